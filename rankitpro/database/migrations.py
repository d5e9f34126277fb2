import os
import logging
from dotenv import load_dotenv
from supabase import create_client

logger = logging.getLogger(__name__)

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SECRET_KEY = os.getenv("SUPABASE_SECRET_KEY")


class MigrationManager:
    def __init__(self, supabase=None):
        self.supabase = supabase

    def connect(self):
        """Connect to the Supabase database using client"""
        if self.supabase is not None:
            return True
        try:
            logger.info("Connecting to Supabase database...")

            if not SUPABASE_URL or not SUPABASE_SECRET_KEY:
                raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set in environment variables")

            self.supabase = create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)
            logger.info("Connected to database successfully")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            return False

    def is_migration_applied(self, version):
        """Check if a migration has already been applied"""
        try:
            result = self.supabase.table("schema_migrations").select("id").eq("version", version).execute()
            return len(result.data) > 0
        except Exception as e:
            logger.error(f"Failed to check migration status: {e}")
            return False

    def record_migration(self, version, description):
        """Record that a migration has been applied"""
        try:
            self.supabase.table("schema_migrations").insert({
                "version": version,
                "description": description
            }).execute()
            logger.info(f"Recorded migration: {version}")
            return True
        except Exception as e:
            logger.error(f"Failed to record migration: {e}")
            return False

    def execute_migration(self, version, description, sql_statements):
        """
        Apply a migration.

        The Supabase client cannot run DDL, so the statements are logged for
        execution in the SQL editor and the version is recorded.
        """
        if self.is_migration_applied(version):
            logger.info(f"Migration {version} already applied, skipping")
            return True

        logger.info(f"Applying migration {version}: {description}")
        logger.warning("Execute the following SQL statements in the Supabase SQL editor:")
        for i, sql in enumerate(sql_statements, 1):
            logger.warning(f"Statement {i}: {sql.strip()}")

        return self.record_migration(version, description)

    def run_migrations(self, migrations=None):
        """Run all migrations"""
        if not self.connect():
            return False

        success = True
        for migration in migrations or MIGRATIONS:
            if not self.execute_migration(
                migration['version'], migration['description'], migration['sql_statements']
            ):
                success = False
        return success


MIGRATIONS = [
    {
        'version': '20240101_schema_migrations',
        'description': 'Migration bookkeeping table',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                id SERIAL PRIMARY KEY,
                version VARCHAR(255) UNIQUE NOT NULL,
                description TEXT,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
        ]
    },
    {
        'version': '20240102_core_schema',
        'description': 'Companies, users, technicians and plans',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS subscription_plans (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                price NUMERIC(10, 2) NOT NULL,
                yearly_price NUMERIC(10, 2),
                billing_period TEXT NOT NULL DEFAULT 'monthly' CHECK (billing_period IN ('monthly', 'yearly')),
                max_technicians INTEGER NOT NULL DEFAULT 5,
                max_check_ins INTEGER NOT NULL DEFAULT 50,
                features JSONB NOT NULL DEFAULT '[]',
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                stripe_product_id TEXT,
                stripe_price_id TEXT,
                stripe_yearly_price_id TEXT,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS companies (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                plan TEXT NOT NULL DEFAULT 'starter' CHECK (plan IN ('starter', 'pro', 'agency')),
                subscription_plan_id INTEGER REFERENCES subscription_plans(id),
                usage_limit INTEGER NOT NULL DEFAULT 50,
                review_settings JSONB,
                wordpress_config JSONB,
                crm_integrations JSONB,
                crm_sync_history JSONB,
                features_enabled JSONB,
                trial_start_date TIMESTAMPTZ,
                trial_end_date TIMESTAMPTZ,
                is_trial_active BOOLEAN NOT NULL DEFAULT TRUE,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                sales_person_id INTEGER,
                stripe_customer_id TEXT,
                stripe_subscription_id TEXT,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS users (
                id SERIAL PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                username TEXT NOT NULL UNIQUE,
                password TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'technician'
                    CHECK (role IN ('super_admin', 'company_admin', 'technician', 'sales_staff')),
                company_id INTEGER REFERENCES companies(id),
                stripe_customer_id TEXT,
                stripe_subscription_id TEXT,
                active BOOLEAN NOT NULL DEFAULT TRUE,
                notification_preferences JSONB,
                last_login_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS technicians (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                phone TEXT,
                specialty TEXT,
                location TEXT,
                user_id INTEGER REFERENCES users(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                UNIQUE (company_id, email)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS job_types (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                company_id INTEGER NOT NULL REFERENCES companies(id),
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
        ]
    },
    {
        'version': '20240103_visits_and_content',
        'description': 'Check-ins and blog posts',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS check_ins (
                id SERIAL PRIMARY KEY,
                job_type TEXT NOT NULL,
                notes TEXT,
                customer_name TEXT,
                customer_email TEXT,
                customer_phone TEXT,
                work_performed TEXT,
                materials_used TEXT,
                latitude NUMERIC,
                longitude NUMERIC,
                location TEXT,
                address TEXT,
                city TEXT,
                state TEXT,
                zip TEXT,
                photos JSONB DEFAULT '[]',
                before_photos JSONB DEFAULT '[]',
                after_photos JSONB DEFAULT '[]',
                problem_description TEXT,
                solution_description TEXT,
                follow_up_required BOOLEAN DEFAULT FALSE,
                follow_up_notes TEXT,
                is_blog BOOLEAN NOT NULL DEFAULT FALSE,
                generated_content TEXT,
                is_deleted BOOLEAN NOT NULL DEFAULT FALSE,
                technician_id INTEGER NOT NULL REFERENCES technicians(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_check_ins_company_created ON check_ins(company_id, created_at DESC);",
            """
            CREATE TABLE IF NOT EXISTS blog_posts (
                id SERIAL PRIMARY KEY,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                excerpt TEXT,
                status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published', 'scheduled')),
                publish_date TIMESTAMPTZ,
                tags JSONB DEFAULT '[]',
                seo_title TEXT,
                seo_description TEXT,
                photos JSONB DEFAULT '[]',
                publish_to_wordpress BOOLEAN DEFAULT FALSE,
                wordpress_post_id INTEGER,
                check_in_id INTEGER REFERENCES check_ins(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
        ]
    },
    {
        'version': '20240104_reviews',
        'description': 'Review requests and responses',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS review_requests (
                id SERIAL PRIMARY KEY,
                customer_name TEXT NOT NULL,
                email TEXT,
                phone TEXT,
                method TEXT NOT NULL CHECK (method IN ('email', 'sms')),
                job_type TEXT,
                custom_message TEXT,
                token TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'sent', 'failed')),
                sent_at TIMESTAMPTZ,
                follow_up_count INTEGER NOT NULL DEFAULT 0,
                last_follow_up_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ,
                technician_id INTEGER NOT NULL REFERENCES technicians(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                check_in_id INTEGER REFERENCES check_ins(id),
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS review_responses (
                id SERIAL PRIMARY KEY,
                review_request_id INTEGER NOT NULL REFERENCES review_requests(id),
                rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
                feedback TEXT,
                customer_name TEXT,
                technician_id INTEGER REFERENCES technicians(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                public_display BOOLEAN NOT NULL DEFAULT FALSE,
                responded_at TIMESTAMPTZ DEFAULT NOW(),
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
        ]
    },
    {
        'version': '20240105_sales',
        'description': 'Sales people, assignments and commissions',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS sales_people (
                id SERIAL PRIMARY KEY,
                user_id INTEGER NOT NULL REFERENCES users(id),
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                phone TEXT,
                commission_rate NUMERIC(5, 4) NOT NULL DEFAULT 0.10,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                total_earnings NUMERIC(10, 2) NOT NULL DEFAULT 0,
                pending_commissions NUMERIC(10, 2) NOT NULL DEFAULT 0,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS company_assignments (
                id SERIAL PRIMARY KEY,
                sales_person_id INTEGER NOT NULL REFERENCES sales_people(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                signup_date TIMESTAMPTZ DEFAULT NOW(),
                subscription_plan TEXT,
                initial_plan_price NUMERIC(10, 2),
                current_plan_price NUMERIC(10, 2),
                billing_period TEXT DEFAULT 'monthly',
                status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'cancelled', 'suspended')),
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS sales_commissions (
                id SERIAL PRIMARY KEY,
                sales_person_id INTEGER NOT NULL REFERENCES sales_people(id),
                company_id INTEGER NOT NULL REFERENCES companies(id),
                subscription_id TEXT,
                amount NUMERIC(10, 2) NOT NULL,
                commission_rate NUMERIC(5, 4) NOT NULL,
                base_amount NUMERIC(10, 2) NOT NULL,
                billing_period TEXT DEFAULT 'monthly',
                type TEXT NOT NULL CHECK (type IN ('signup', 'renewal', 'setup', 'bonus')),
                status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'paid', 'disputed')),
                is_paid BOOLEAN NOT NULL DEFAULT FALSE,
                paid_at TIMESTAMPTZ,
                payment_date TIMESTAMPTZ,
                commission_month TEXT,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_sales_commissions_month
                ON sales_commissions(sales_person_id, company_id, commission_month)
                WHERE commission_month IS NOT NULL;
            """,
        ]
    },
    {
        'version': '20240106_support',
        'description': 'Support tickets',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS support_tickets (
                id SERIAL PRIMARY KEY,
                ticket_number TEXT NOT NULL UNIQUE,
                company_id INTEGER REFERENCES companies(id),
                submitter_id INTEGER NOT NULL REFERENCES users(id),
                subject TEXT NOT NULL,
                description TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'general',
                priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high', 'urgent')),
                status TEXT NOT NULL DEFAULT 'open'
                    CHECK (status IN ('open', 'in_progress', 'waiting', 'resolved', 'closed')),
                assigned_to_id INTEGER REFERENCES users(id),
                resolution TEXT,
                resolved_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS support_ticket_responses (
                id SERIAL PRIMARY KEY,
                ticket_id INTEGER NOT NULL REFERENCES support_tickets(id) ON DELETE CASCADE,
                responder_id INTEGER NOT NULL REFERENCES users(id),
                responder_name TEXT,
                responder_type TEXT NOT NULL CHECK (responder_type IN ('admin', 'customer')),
                message TEXT NOT NULL,
                is_internal BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
        ]
    },
    {
        'version': '20240107_testimonials',
        'description': 'Audio and video testimonials with customer approval links',
        'sql_statements': [
            """
            CREATE TABLE IF NOT EXISTS testimonials (
                id SERIAL PRIMARY KEY,
                company_id INTEGER NOT NULL REFERENCES companies(id),
                technician_id INTEGER NOT NULL REFERENCES technicians(id),
                check_in_id INTEGER REFERENCES check_ins(id),
                customer_name TEXT NOT NULL,
                customer_email TEXT,
                customer_phone TEXT,
                type TEXT NOT NULL CHECK (type IN ('audio', 'video')),
                title TEXT NOT NULL,
                content TEXT,
                duration INTEGER,
                original_file_name TEXT,
                file_size INTEGER,
                mime_type TEXT,
                storage_url TEXT NOT NULL,
                thumbnail_url TEXT,
                job_type TEXT,
                location TEXT,
                rating INTEGER CHECK (rating BETWEEN 1 AND 5),
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'approved', 'published', 'rejected')),
                approved_at TIMESTAMPTZ,
                published_at TIMESTAMPTZ,
                is_public BOOLEAN NOT NULL DEFAULT FALSE,
                show_on_website BOOLEAN NOT NULL DEFAULT FALSE,
                tags JSONB,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS testimonial_approvals (
                id SERIAL PRIMARY KEY,
                testimonial_id INTEGER NOT NULL REFERENCES testimonials(id) ON DELETE CASCADE,
                customer_email TEXT NOT NULL,
                approval_token TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'rejected')),
                approved_at TIMESTAMPTZ,
                rejected_at TIMESTAMPTZ,
                rejection_reason TEXT,
                email_sent_at TIMESTAMPTZ,
                expires_at TIMESTAMPTZ NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_testimonials_company_status ON testimonials(company_id, status);",
        ]
    },
    {
        'version': '20240108_wordpress_api_key',
        'description': 'Indexed WordPress plugin API key column',
        'sql_statements': [
            "ALTER TABLE companies ADD COLUMN IF NOT EXISTS wordpress_api_key TEXT;",
            """
            UPDATE companies SET wordpress_api_key = wordpress_config->>'api_key'
            WHERE wordpress_api_key IS NULL AND wordpress_config->>'api_key' IS NOT NULL;
            """,
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_companies_wordpress_api_key ON companies(wordpress_api_key);",
        ]
    },
]


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    MigrationManager().run_migrations()
