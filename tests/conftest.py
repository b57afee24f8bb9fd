import os

# Settings are read once at import time; point the suite at its own database file.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoicing.db")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("STRIPE_SECRET_KEY", None)
