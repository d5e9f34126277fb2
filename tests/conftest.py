# -*- coding: utf-8 -*-
"""
Shared test fixtures for the Rank It Pro API.

Services talk to Supabase through ``SupabaseClientSingleton``; tests install
an in-memory ``FakeSupabase`` there so routes run against real query logic.
Email and SMS delivery are replaced with MagicMocks.
"""

import copy
import itertools
from datetime import datetime
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
import stripe

from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.email.email_service import EmailServiceSingleton
from rankitpro.middleware.auth import issue_token
from rankitpro.models.company import Company
from rankitpro.models.technician import Technician
from rankitpro.models.user import User
from rankitpro.service.blog_post_service import BlogPostServiceSingleton
from rankitpro.service.check_in_service import CheckInServiceSingleton
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.content_service import ContentServiceSingleton
from rankitpro.service.job_type_service import JobTypeServiceSingleton
from rankitpro.service.review_request_service import ReviewRequestServiceSingleton
from rankitpro.service.sales_service import SalesServiceSingleton
from rankitpro.service.sms_service import SmsServiceSingleton
from rankitpro.service.subscription_plan_service import SubscriptionPlanServiceSingleton
from rankitpro.service.support_service import SupportServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.testimonial_service import TestimonialServiceSingleton
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import Roles
from rankitpro.utils.dates import parse_datetime

TEST_PASSWORD = "password123"

SERVICE_SINGLETONS = (
    BlogPostServiceSingleton,
    CheckInServiceSingleton,
    CompanyServiceSingleton,
    ContentServiceSingleton,
    JobTypeServiceSingleton,
    ReviewRequestServiceSingleton,
    SalesServiceSingleton,
    SmsServiceSingleton,
    SubscriptionPlanServiceSingleton,
    SupportServiceSingleton,
    TechnicianServiceSingleton,
    TestimonialServiceSingleton,
    UserServiceSingleton,
    EmailServiceSingleton,
)


# =============================================================================
# IN-MEMORY SUPABASE
# =============================================================================

def _comparable(value):
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == '-' and value[7:8] == '-':
        parsed = parse_datetime(value)
        if parsed:
            return parsed
    return value


def _compare(row_value, op, value) -> bool:
    if op == 'eq':
        return row_value == value
    if op == 'neq':
        return row_value != value
    if op == 'in':
        return row_value in value
    if row_value is None or value is None:
        return False
    left, right = _comparable(row_value), _comparable(value)
    if type(left) is not type(right) and not (
        isinstance(left, (int, float)) and isinstance(right, (int, float))
    ):
        left, right = str(row_value), str(value)
    if op == 'gt':
        return left > right
    if op == 'gte':
        return left >= right
    if op == 'lt':
        return left < right
    return left <= right


def _storable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _storable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_storable(v) for v in value]
    return value


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: 'FakeSupabase', table: str):
        self.db = db
        self.table_name = table
        self.operation = 'select'
        self.payload = None
        self.filters = []
        self.orders = []
        self.row_limit = None
        self.offset = 0
        self.want_count = False

    # --- operations -------------------------------------------------------

    def select(self, *columns, count=None):
        self.operation = 'select'
        self.want_count = count is not None
        return self

    def insert(self, data):
        self.operation = 'insert'
        self.payload = data
        return self

    def upsert(self, data, **kwargs):
        self.operation = 'upsert'
        self.payload = data
        return self

    def update(self, data):
        self.operation = 'update'
        self.payload = data
        return self

    def delete(self):
        self.operation = 'delete'
        return self

    # --- filters ----------------------------------------------------------

    def _filter(self, op, column, value):
        self.filters.append((column, op, value))
        return self

    def eq(self, column, value):
        return self._filter('eq', column, value)

    def neq(self, column, value):
        return self._filter('neq', column, value)

    def gt(self, column, value):
        return self._filter('gt', column, value)

    def gte(self, column, value):
        return self._filter('gte', column, value)

    def lt(self, column, value):
        return self._filter('lt', column, value)

    def lte(self, column, value):
        return self._filter('lte', column, value)

    def in_(self, column, values):
        return self._filter('in', column, list(values))

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def range(self, start, end):
        self.offset = start
        self.row_limit = end - start + 1
        return self

    # --- execution --------------------------------------------------------

    def _matches(self, row) -> bool:
        return all(_compare(row.get(column), op, value) for column, op, value in self.filters)

    def execute(self) -> FakeResponse:
        rows = self.db.rows(self.table_name)

        if self.operation in ('insert', 'upsert'):
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in items:
                row = _storable(dict(item))
                if row.get('id') is None:
                    row['id'] = next(self.db.ids[self.table_name])
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        matched = [row for row in rows if self._matches(row)]

        if self.operation == 'update':
            for row in matched:
                row.update(_storable(dict(self.payload)))
            return FakeResponse(copy.deepcopy(matched))

        if self.operation == 'delete':
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return FakeResponse(copy.deepcopy(matched))

        for column, desc in reversed(self.orders):
            matched.sort(
                key=lambda r: (r.get(column) is None, _comparable(r.get(column)) if r.get(column) is not None else 0),
                reverse=desc,
            )
        total = len(matched)
        matched = matched[self.offset:]
        if self.row_limit is not None:
            matched = matched[:self.row_limit]
        return FakeResponse(copy.deepcopy(matched), total if self.want_count else None)


class FakeSupabase:
    """Just enough of the supabase-py query builder for the services."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.ids: Dict[str, Any] = {}

    def rows(self, table: str) -> List[Dict[str, Any]]:
        if table not in self.tables:
            self.tables[table] = []
        if table not in self.ids:
            self.ids[table] = itertools.count(1)
        return self.tables[table]

    def table(self, name: str) -> FakeQuery:
        self.rows(name)
        return FakeQuery(self, name)

    def seed(self, table: str, **row) -> Dict[str, Any]:
        return self.table(table).insert(row).execute().data[0]


# =============================================================================
# APP + SERVICE WIRING
# =============================================================================

@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Keep external integrations switched off unless a test opts in."""
    monkeypatch.setattr(stripe, 'api_key', None)
    for key in (
        'ANTHROPIC_API_KEY', 'STRIPE_SECRET_KEY', 'STRIPE_WEBHOOK_SECRET',
        'TWILIO_ACCOUNT_SID', 'TWILIO_AUTH_TOKEN', 'TWILIO_PHONE_NUMBER',
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv('SECRET_KEY', 'test-secret-key-that-is-long-enough-for-hs256')
    monkeypatch.setenv('FRONTEND_URL', 'http://localhost:5173')


@pytest.fixture
def db():
    fake = FakeSupabase()
    for singleton in SERVICE_SINGLETONS:
        singleton.reset_instance()
    SupabaseClientSingleton.set_instance(fake)
    yield fake
    SupabaseClientSingleton.reset_instance()
    for singleton in SERVICE_SINGLETONS:
        singleton.reset_instance()


@pytest.fixture
def mock_email(db):
    mock = MagicMock()
    for name in (
        'send_email', 'send_welcome_email', 'send_check_in_notification', 'send_blog_post_notification',
        'send_review_request', 'send_review_request_admin_notification', 'send_trial_expired_email',
        'send_ticket_created_email', 'send_ticket_update_email', 'send_testimonial_approval_email',
    ):
        getattr(mock, name).return_value = True
    mock.review_url.side_effect = lambda token: f"http://localhost:5173/review/{token}"
    EmailServiceSingleton._instance = mock
    return mock


@pytest.fixture
def mock_sms(db):
    mock = MagicMock()
    mock.send_review_request.return_value = True
    mock.send_sms.return_value = True
    SmsServiceSingleton._instance = mock
    return mock


@pytest.fixture
def app(db, mock_email, mock_sms):
    from rankitpro.application import create_app
    return create_app({'TESTING': True})


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# DATA FACTORIES
# =============================================================================

@pytest.fixture
def make_company(db):
    def make(name="Acme Plumbing", plan="starter", **fields) -> Company:
        company = Company()
        company.name = name
        company.plan = plan
        for key, value in fields.items():
            setattr(company, key, value)
        return CompanyServiceSingleton.get_instance().create(company)
    return make


@pytest.fixture
def make_user(db):
    def make(role=Roles.COMPANY_ADMIN, company_id=None, email=None, username=None, **fields) -> User:
        service = UserServiceSingleton.get_instance()
        user = User()
        user.role = role
        user.company_id = company_id
        user.email = email or f"{role}{len(db.rows('users')) + 1}@example.com"
        user.username = username or service.unique_username(user.email)
        for key, value in fields.items():
            setattr(user, key, value)
        return service.create(user, raw_password=TEST_PASSWORD)
    return make


@pytest.fixture
def make_technician(db):
    def make(company_id, name="Tom Tech", user_id=None, **fields) -> Technician:
        technician = Technician()
        technician.name = name
        technician.email = fields.pop('email', f"{name.split()[0].lower()}@example.com")
        technician.phone = fields.pop('phone', "555-0100")
        technician.location = fields.pop('location', "Springfield")
        technician.company_id = company_id
        technician.user_id = user_id
        for key, value in fields.items():
            setattr(technician, key, value)
        return TechnicianServiceSingleton.get_instance().create(technician)
    return make


@pytest.fixture
def auth_headers():
    def headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user)}"}
    return headers


@pytest.fixture
def company(make_company):
    return make_company()


@pytest.fixture
def super_admin(make_user):
    return make_user(role=Roles.SUPER_ADMIN, email="root@rankitpro.com")


@pytest.fixture
def company_admin(make_user, company):
    return make_user(role=Roles.COMPANY_ADMIN, company_id=company.id, email="owner@acme.com")


@pytest.fixture
def tech_user(make_user, company):
    return make_user(role=Roles.TECHNICIAN, company_id=company.id, email="tom@acme.com")


@pytest.fixture
def technician(make_technician, company, tech_user):
    return make_technician(company.id, name="Tom Tech", user_id=tech_user.id, email="tom@acme.com")
