import pytest

from payment_pipeline.database.transactions_real import SqlTransactionStore, _normalize_connection_string
from payment_pipeline.integrations.contracts.errors import PersistenceUnavailable
from payment_pipeline.integrations.contracts.interfaces import RecordStatus, TransactionRecord


def _record(session_id="s1", status=RecordStatus.COMPLETED, **overrides):
    fields = dict(
        customer_id="cus_1",
        customer_email="a@x.com",
        amount=50000,
        currency="usd",
        payment_status=status,
        source_session_id=session_id,
        source_event_id="evt_1",
        invoice_id="inv-1",
        contract_id="doc-1",
        squadron_id="sq-7",
        pcp_assigned="dr-lee",
    )
    fields.update(overrides)
    return TransactionRecord(**fields)


@pytest.fixture
def sql_store(tmp_path):
    store = SqlTransactionStore(f"sqlite:///{tmp_path / 'ledger.db'}")
    store.create_tables()
    return store


def test_append_assigns_id_and_timestamp(sql_store):
    stored = sql_store.append(_record())

    assert stored.record_id
    assert stored.timestamp is not None
    assert stored.payment_status == RecordStatus.COMPLETED
    assert stored.amount == 50000
    assert stored.squadron_id == "sq-7"


def test_find_by_session_only_returns_that_session(sql_store):
    sql_store.append(_record("s1", RecordStatus.PARTIAL, contract_id=None, failure_stage="contract"))
    sql_store.append(_record("s2"))

    records = sql_store.find_by_session("s1")

    assert len(records) == 1
    assert records[0].payment_status == RecordStatus.PARTIAL
    assert records[0].contract_id is None
    assert records[0].failure_stage == "contract"
    assert sql_store.find_by_session("missing") == []


def test_ping(sql_store):
    assert sql_store.ping() is True


def test_unreachable_database_raises_persistence_unavailable(tmp_path):
    store = SqlTransactionStore(f"sqlite:///{tmp_path / 'missing-dir' / 'ledger.db'}")

    with pytest.raises(PersistenceUnavailable):
        store.find_by_session("s1")
    assert store.ping() is False


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgres://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("psql 'postgresql://u:p@h/db'", "postgresql+psycopg://u:p@h/db"),
        ("  postgresql+psycopg://u:p@h/db  ", "postgresql+psycopg://u:p@h/db"),
        ("sqlite:///ledger.db", "sqlite:///ledger.db"),
    ],
)
def test_normalize_connection_string(raw, expected):
    assert _normalize_connection_string(raw) == expected


def test_unsent_contract_is_persisted(sql_store):
    sql_store.append(_record(status=RecordStatus.PARTIAL, contract_id=None, unsent_contract_id="doc-9"))

    (stored,) = sql_store.find_by_session("s1")
    assert stored.contract_id is None
    assert stored.unsent_contract_id == "doc-9"
