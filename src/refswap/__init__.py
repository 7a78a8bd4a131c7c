"""refswap - swap quoting and execution engine for Ref Finance pools on NEAR."""

__version__ = "0.1.0"
