from dotenv import load_dotenv
import os
from datetime import timedelta

load_dotenv()


class Roles:
    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    TECHNICIAN = "technician"
    SALES_STAFF = "sales_staff"

    ALL = (SUPER_ADMIN, COMPANY_ADMIN, TECHNICIAN, SALES_STAFF)


MIN_PASSWORD_LENGTH = 8
MIN_USERNAME_LENGTH = 3

# Login session lifetimes with and without "remember me"
REMEMBER_ME_LIFETIME = timedelta(days=30)
SESSION_LIFETIME = timedelta(hours=4)

PLANS = ("starter", "pro", "agency")

# Monthly quotas per plan
PLAN_LIMITS = {
    "starter": {"checkins": 50, "blogPosts": 20, "technicians": 2},
    "pro": {"checkins": 200, "blogPosts": 50, "technicians": 5},
    "agency": {"checkins": 500, "blogPosts": 100, "technicians": 15},
}

# Usage limit stored on the company at registration time
PLAN_USAGE_LIMITS = {
    "starter": 50,
    "pro": 200,
    "agency": 1000,
}

# Monthly list prices in USD, used for commissions and MRR
PLAN_PRICES = {
    "starter": 49,
    "pro": 149,
    "agency": 299,
}

DEFAULT_COMMISSION_RATE = 0.10

# Days a customer has to approve a recorded testimonial
TESTIMONIAL_APPROVAL_DAYS = 7

DEFAULT_REVIEW_SETTINGS = {
    "autoSendReviews": True,
    "delayHours": 24,
    "contactPreference": "email",
    "emailTemplate": "default",
    "smsTemplate": "default",
    "includeTechnicianName": True,
    "includeJobDetails": True,
    "followUpEnabled": True,
    "followUpDelayDays": 3,
    "maxFollowUps": 2,
}

DEFAULT_FEATURES = {
    "reviews": True,
    "blogPosts": True,
    "wordpress": True,
    "crmSync": False,
}


class Settings:
    def __init__(self) -> None:
        # Database
        self.SUPABASE_URL = os.getenv('SUPABASE_URL')
        self.SUPABASE_SECRET_KEY = os.getenv('SUPABASE_SECRET_KEY')
        # Sessions and tokens
        self.SECRET_KEY = os.getenv('SECRET_KEY') or os.getenv('SESSION_SECRET') or 'dev-secret-change-me'
        self.JWT_EXPIRATION_HOURS = int(os.getenv('JWT_EXPIRATION_HOURS', 24))
        # Stripe
        self.STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
        self.STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
        # Twilio
        self.TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
        self.TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
        self.TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')
        # AI content
        self.ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY')
        self.ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-3-5-haiku-latest')
        # Workers
        self.REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
        # App
        self.APP_NAME = os.getenv('APP_NAME', 'Rank It Pro')
        self.FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')
        self.API_BASE_URL = os.getenv('API_BASE_URL', 'http://localhost:8000')
        self.TRIAL_DURATION_DAYS = int(os.getenv('TRIAL_DURATION_DAYS', 14))

    def get(self, key: str, default=None):
        """Get setting value with optional default (dict-like access)."""
        value = getattr(self, key, None)
        return default if value is None else value

    def stripe_price_id(self, plan: str, billing_period: str = 'monthly'):
        return os.getenv(f"STRIPE_{plan.upper()}_{billing_period.upper()}_PRICE_ID")

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)

    @property
    def twilio_enabled(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER)
