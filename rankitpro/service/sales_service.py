"""
Sales Service - sales staff, company assignments and commission bookkeeping.

Commission rates are stored as fractions (0.10 == 10%). One commission row
exists per (sales person, company, month) for monthly renewals.
"""

from typing import List, Dict, Any, Optional
import threading
import logging

from supabase import Client

from rankitpro.models.sales import SalesPerson, CompanyAssignment, SalesCommission
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.constants import PLAN_PRICES
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)


class SalesServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SalesService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class SalesService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.people_table = "sales_people"
        self.assignments_table = "company_assignments"
        self.commissions_table = "sales_commissions"

    # =========================================================================
    # Sales people
    # =========================================================================

    def create_person(self, person: SalesPerson) -> SalesPerson:
        person.created_at = person.created_at or utcnow()
        result = self.supabase.table(self.people_table).insert(person.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            created = SalesPerson.from_dict(result.data[0])
            logger.info(f"Created sales person {created.id} ({created.email})")
            return created
        return person

    def get_person(self, person_id: int) -> Optional[SalesPerson]:
        result = self.supabase.table(self.people_table).select('*').eq('id', person_id).execute()

        if result.data and len(result.data) > 0:
            return SalesPerson.from_dict(result.data[0])
        return None

    def get_person_by_user(self, user_id: int) -> Optional[SalesPerson]:
        result = self.supabase.table(self.people_table).select('*').eq('user_id', user_id).execute()

        if result.data and len(result.data) > 0:
            return SalesPerson.from_dict(result.data[0])
        return None

    def get_people(self) -> List[SalesPerson]:
        result = self.supabase.table(self.people_table).select('*').order('name').execute()
        return [SalesPerson.from_dict(item) for item in (result.data or [])]

    def update_person(self, person_id: int, fields: Dict[str, Any]) -> Optional[SalesPerson]:
        result = self.supabase.table(self.people_table).update(fields).eq('id', person_id).execute()

        if result.data and len(result.data) > 0:
            return SalesPerson.from_dict(result.data[0])
        return None

    # =========================================================================
    # Assignments
    # =========================================================================

    def assign_company(self, person: SalesPerson, company) -> CompanyAssignment:
        """Attribute a company to a sales person, replacing any earlier active assignment."""
        existing = self.get_active_assignment(company.id)
        if existing:
            self.update_assignment(existing.id, {'status': 'cancelled'})

        price = PLAN_PRICES.get(company.plan, 0)
        assignment = CompanyAssignment()
        assignment.sales_person_id = person.id
        assignment.company_id = company.id
        assignment.signup_date = utcnow()
        assignment.subscription_plan = company.plan
        assignment.initial_plan_price = price
        assignment.current_plan_price = price
        assignment.created_at = utcnow()

        result = self.supabase.table(self.assignments_table).insert(assignment.to_dict(exclude_none=True)).execute()
        self.supabase.table('companies').update({'sales_person_id': person.id}).eq('id', company.id).execute()
        logger.info(f"Assigned company {company.id} to sales person {person.id}")

        if result.data and len(result.data) > 0:
            return CompanyAssignment.from_dict(result.data[0])
        return assignment

    def get_active_assignment(self, company_id: int) -> Optional[CompanyAssignment]:
        result = (
            self.supabase.table(self.assignments_table)
            .select('*')
            .eq('company_id', company_id)
            .eq('status', 'active')
            .execute()
        )

        if result.data and len(result.data) > 0:
            return CompanyAssignment.from_dict(result.data[0])
        return None

    def update_assignment(self, assignment_id: int, fields: Dict[str, Any]) -> Optional[CompanyAssignment]:
        result = self.supabase.table(self.assignments_table).update(fields).eq('id', assignment_id).execute()

        if result.data and len(result.data) > 0:
            return CompanyAssignment.from_dict(result.data[0])
        return None

    def get_assignments(self, person_id: Optional[int] = None, active_only: bool = False) -> List[CompanyAssignment]:
        query = self.supabase.table(self.assignments_table).select('*')
        if person_id:
            query = query.eq('sales_person_id', person_id)
        if active_only:
            query = query.eq('status', 'active')
        result = query.order('created_at', desc=True).execute()
        return [CompanyAssignment.from_dict(item) for item in (result.data or [])]

    # =========================================================================
    # Commissions
    # =========================================================================

    def get_commissions(self, person_id: Optional[int] = None, status: Optional[str] = None) -> List[SalesCommission]:
        query = self.supabase.table(self.commissions_table).select('*')
        if person_id:
            query = query.eq('sales_person_id', person_id)
        if status:
            query = query.eq('status', status)
        result = query.order('created_at', desc=True).execute()
        return [SalesCommission.from_dict(item) for item in (result.data or [])]

    def get_commission(self, commission_id: int) -> Optional[SalesCommission]:
        result = self.supabase.table(self.commissions_table).select('*').eq('id', commission_id).execute()

        if result.data and len(result.data) > 0:
            return SalesCommission.from_dict(result.data[0])
        return None

    def commission_exists(self, person_id: int, company_id: int, month: str) -> bool:
        result = (
            self.supabase.table(self.commissions_table)
            .select('id')
            .eq('sales_person_id', person_id)
            .eq('company_id', company_id)
            .eq('commission_month', month)
            .execute()
        )
        return bool(result.data)

    def create_commission(
        self,
        person: SalesPerson,
        company_id: int,
        base_amount: float,
        commission_type: str = 'renewal',
        month: Optional[str] = None,
        subscription_id: Optional[str] = None,
        billing_period: str = 'monthly',
    ) -> SalesCommission:
        rate = float(person.commission_rate or 0)
        commission = SalesCommission()
        commission.sales_person_id = person.id
        commission.company_id = company_id
        commission.subscription_id = subscription_id
        commission.base_amount = round(float(base_amount), 2)
        commission.commission_rate = rate
        commission.amount = round(float(base_amount) * rate, 2)
        commission.type = commission_type
        commission.billing_period = billing_period
        commission.commission_month = month
        commission.created_at = utcnow()

        result = self.supabase.table(self.commissions_table).insert(commission.to_dict(exclude_none=True)).execute()
        self.update_person(person.id, {
            'pending_commissions': round(float(person.pending_commissions or 0) + commission.amount, 2),
        })

        if result.data and len(result.data) > 0:
            return SalesCommission.from_dict(result.data[0])
        return commission

    def calculate_monthly_commissions(self, month: str) -> List[SalesCommission]:
        """
        Create renewal commissions for ``month`` (YYYY-MM).

        Only active assignments of paying companies earn a commission, and an
        existing row for the same person, company and month is never duplicated.
        """
        created = []
        for assignment in self.get_assignments(active_only=True):
            person = self.get_person(assignment.sales_person_id)
            if not person or not person.is_active:
                continue

            company_result = self.supabase.table('companies').select('*').eq('id', assignment.company_id).execute()
            if not company_result.data:
                continue
            company = company_result.data[0]
            if not company.get('stripe_subscription_id'):
                continue

            if self.commission_exists(person.id, assignment.company_id, month):
                continue

            price = PLAN_PRICES.get(company.get('plan'), 0)
            commission = self.create_commission(
                person,
                assignment.company_id,
                price,
                commission_type='renewal',
                month=month,
                subscription_id=company.get('stripe_subscription_id'),
            )
            created.append(commission)

        logger.info(f"Calculated {len(created)} commissions for {month}")
        return created

    def approve_commissions(self, commission_ids: List[int]) -> int:
        approved = 0
        for commission_id in commission_ids:
            commission = self.get_commission(commission_id)
            if commission and commission.status == 'pending':
                self.supabase.table(self.commissions_table).update({'status': 'approved'}).eq('id', commission_id).execute()
                approved += 1
        return approved

    def mark_paid(self, commission_id: int) -> Optional[SalesCommission]:
        commission = self.get_commission(commission_id)
        if not commission:
            return None
        if commission.is_paid:
            return commission

        now = utcnow().isoformat()
        result = (
            self.supabase.table(self.commissions_table)
            .update({'status': 'paid', 'is_paid': True, 'paid_at': now, 'payment_date': now})
            .eq('id', commission_id)
            .execute()
        )

        person = self.get_person(commission.sales_person_id)
        if person:
            amount = float(commission.amount or 0)
            self.update_person(person.id, {
                'total_earnings': round(float(person.total_earnings or 0) + amount, 2),
                'pending_commissions': max(0, round(float(person.pending_commissions or 0) - amount, 2)),
            })

        if result.data and len(result.data) > 0:
            return SalesCommission.from_dict(result.data[0])
        return None

    def get_person_stats(self, person: SalesPerson) -> Dict[str, Any]:
        month_prefix = utcnow().strftime('%Y-%m')
        commissions = self.get_commissions(person.id)
        assignments = self.get_assignments(person.id)
        monthly = [
            c for c in commissions
            if (c.commission_month == month_prefix)
            or (c.created_at and c.created_at.strftime('%Y-%m') == month_prefix)
        ]
        last_sale = max((a.signup_date for a in assignments if a.signup_date), default=None)

        return {
            'totalCustomers': sum(1 for a in assignments if a.status == 'active'),
            'monthlyEarnings': round(sum(float(c.amount or 0) for c in monthly), 2),
            'pendingPayouts': round(sum(float(c.amount or 0) for c in commissions if not c.is_paid), 2),
            'totalEarnings': round(sum(float(c.amount or 0) for c in commissions if c.is_paid), 2),
            'lastSale': last_sale.isoformat() if last_sale else None,
        }

    def get_dashboard(self) -> Dict[str, Any]:
        people = self.get_people()
        commissions = self.get_commissions()
        assignments = self.get_assignments(active_only=True)

        def total(status):
            return round(sum(float(c.amount or 0) for c in commissions if c.status == status), 2)

        earnings = {}
        for c in commissions:
            earnings[c.sales_person_id] = earnings.get(c.sales_person_id, 0) + float(c.amount or 0)
        names = {p.id: p.name for p in people}
        top = sorted(earnings.items(), key=lambda item: item[1], reverse=True)[:5]

        return {
            'totalSalesPeople': len(people),
            'activeSalesPeople': sum(1 for p in people if p.is_active),
            'activeAssignments': len(assignments),
            'pendingAmount': total('pending'),
            'approvedAmount': total('approved'),
            'paidAmount': total('paid'),
            'topEarners': [
                {'salesPersonId': pid, 'name': names.get(pid), 'earnings': round(amount, 2)}
                for pid, amount in top
            ],
        }
