"""Server info fetcher: poll game servers over the topic status protocol and publish a snapshot."""

__version__ = "0.3.0"
