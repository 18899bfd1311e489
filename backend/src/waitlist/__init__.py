"""June waitlist backend: magic-link signup, referral codes and leaderboard."""

__version__ = "1.0.0"
