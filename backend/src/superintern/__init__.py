"""SuperIntern - internship program backend with referrals and a task marketplace."""

__version__ = "1.0.0"
