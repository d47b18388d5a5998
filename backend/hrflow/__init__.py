"""HR onboarding pipeline: offers, employment forms, contracts, accounts and documents."""

__version__ = "0.1.0"
