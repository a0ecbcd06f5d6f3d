"""drawio-mermaid-bridge: secure cross-document Mermaid insertion protocol."""

__version__ = "0.1.0"
