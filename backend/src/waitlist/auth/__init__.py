"""Sign-in link minting and verification."""

from waitlist.auth.links import SignInLinkMinter

__all__ = ["SignInLinkMinter"]
