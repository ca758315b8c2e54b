"""
Tests para la numeración de documentos
"""

from datetime import datetime, timezone

from inventa.modules.sequences.models import DocumentSequence
from inventa.modules.sequences.service import next_sale_number, next_invoice_number


DAY = datetime(2025, 3, 7, 15, 30, tzinfo=timezone.utc)
NEXT_DAY = datetime(2025, 3, 8, 0, 5, tzinfo=timezone.utc)


class TestDocumentSequences:

    def test_sale_numbers_are_consecutive(self, db_session, tenant):
        numbers = [next_sale_number(db_session, tenant["tenant_id"], at=DAY) for _ in range(3)]
        db_session.commit()
        assert numbers == ["V-20250307-0001", "V-20250307-0002", "V-20250307-0003"]

    def test_counter_restarts_each_day(self, db_session, tenant):
        next_sale_number(db_session, tenant["tenant_id"], at=DAY)
        assert next_sale_number(db_session, tenant["tenant_id"], at=NEXT_DAY) == "V-20250308-0001"

    def test_invoice_format(self, db_session, tenant):
        assert next_invoice_number(db_session, tenant["tenant_id"], at=DAY) == "F250307-0001"
        assert next_sale_number(db_session, tenant["tenant_id"], at=DAY) == "V-20250307-0001"

    def test_companies_have_independent_counters(self, db_session, tenant, other_tenant):
        next_sale_number(db_session, tenant["tenant_id"], at=DAY)
        next_sale_number(db_session, tenant["tenant_id"], at=DAY)
        assert next_sale_number(db_session, other_tenant["tenant_id"], at=DAY) == "V-20250307-0001"

    def test_rolled_back_numbers_are_reused(self, db_session, tenant):
        next_sale_number(db_session, tenant["tenant_id"], at=DAY)
        db_session.commit()
        next_sale_number(db_session, tenant["tenant_id"], at=DAY)
        db_session.rollback()

        assert next_sale_number(db_session, tenant["tenant_id"], at=DAY) == "V-20250307-0002"
        assert db_session.query(DocumentSequence).count() == 1
