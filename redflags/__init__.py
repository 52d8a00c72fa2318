"""Red Flags - vet nonprofits against IRS revocations, OFAC sanctions and court records."""

__version__ = "1.0.0"
