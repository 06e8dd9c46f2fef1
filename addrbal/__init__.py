# addrbal: keeps AddressBalance in sync with the external balance service.
__version__ = "0.1.0"
