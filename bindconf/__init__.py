"""bindconf: SO_BINDTODEVICE / address-reuse bind-conflict conformance runner."""
