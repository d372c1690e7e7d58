"""Key-value pipeline: namespaces, batch get/put and key enumeration."""
