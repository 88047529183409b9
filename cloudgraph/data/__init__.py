"""Built-in rule tables and billing maps, shipped as package data."""
