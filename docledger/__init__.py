"""Document tracking chaincode and its development host."""
__version__ = "0.1.0"
