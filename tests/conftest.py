"""
Marketplace Test Configuration

Shared fixtures for all tests. Every test gets its own SQLite database file
and recording fakes in place of the notification, push and payment
collaborators.
"""

import os

# Keep the module-level engine away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from marketplace import models, models_workspace  # noqa: E402,F401
from marketplace.database import Base, build_engine, get_db  # noqa: E402
from marketplace.dependencies import (  # noqa: E402
    get_notification_emitter,
    get_payment_eligibility,
    get_realtime_channel,
)
from marketplace.domain.contracts.schemas import ContractCreate, PhaseInput  # noqa: E402
from marketplace.domain.contracts.service import ContractService  # noqa: E402
from marketplace.domain.milestones.service import MilestoneService  # noqa: E402
from marketplace.domain.workspaces.provisioner import WorkspaceProvisioner  # noqa: E402
from marketplace.domain.workspaces.repository import WorkspaceRepository  # noqa: E402
from marketplace.main import app  # noqa: E402
from marketplace.models import User  # noqa: E402
from marketplace.services.notification_service import NotificationEmitter  # noqa: E402
from marketplace.services.payment_eligibility import PaymentEligibility  # noqa: E402
from marketplace.services.realtime import RealtimeChannel  # noqa: E402


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class RecordingNotifier(NotificationEmitter):
    def __init__(self):
        self.sent = []
        self.fail = False

    def emit(self, party_id, event_kind, payload):
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append((party_id, event_kind, payload))

    def kinds_for(self, party_id):
        return [kind for pid, kind, _ in self.sent if pid == party_id]


class RecordingRealtime(RealtimeChannel):
    def __init__(self):
        self.events = []
        self.fail = False

    def publish(self, party_id, event):
        if self.fail:
            raise RuntimeError("socket gateway down")
        self.events.append((party_id, event))


class RecordingPayments(PaymentEligibility):
    def __init__(self):
        self.ready = []
        self.fail = False

    def mark_ready(self, milestone_id):
        if self.fail:
            raise RuntimeError("payments down")
        self.ready.append(milestone_id)


# =============================================================================
# FIXTURES: Database
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'marketplace_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# FIXTURES: Parties and collaborators
# =============================================================================


def make_user(db, auth_uid, full_name, account_type=None):
    user = User(auth_uid=auth_uid, full_name=full_name, email=f"{auth_uid}@example.com", account_type=account_type)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def client_user(db):
    return make_user(db, "client-uid", "Carla Client", "client")


@pytest.fixture
def freelancer_user(db):
    return make_user(db, "freelancer-uid", "Frank Freelancer", "freelancer")


@pytest.fixture
def stranger_user(db):
    return make_user(db, "stranger-uid", "Sam Stranger")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def realtime():
    return RecordingRealtime()


@pytest.fixture
def payments():
    return RecordingPayments()


@pytest.fixture
def contract_service(db, notifier, realtime):
    return ContractService(db, notifier, realtime)


@pytest.fixture
def milestone_service(db, notifier, realtime, payments):
    return MilestoneService(db, notifier, realtime, payments)


@pytest.fixture
def provisioner(db, notifier, realtime):
    return WorkspaceProvisioner(db, notifier, realtime)


# =============================================================================
# FIXTURES: Contracts
# =============================================================================


def three_phases(budget=1000.0):
    """30% / 50% / 20% split of the budget"""
    return [
        PhaseInput(phase=1, title="Design", amount=budget * 0.3, deliverables=["Wireframes"]),
        PhaseInput(phase=2, title="Build", amount=budget * 0.5, deliverables=["Working app"]),
        PhaseInput(phase=3, title="Launch", amount=budget * 0.2, deliverables=["Deployment"]),
    ]


def contract_payload(freelancer_id, phases="three", budget=1000.0, **overrides):
    data = {
        "freelancerId": freelancer_id,
        "title": "Marketing website",
        "terms": "Deliver a five page marketing website.",
        "description": "Company site rebuild",
        "totalBudget": budget,
    }
    if phases == "three":
        data["phases"] = three_phases(budget)
    elif phases is not None:
        data["phases"] = phases
    data.update(overrides)
    return ContractCreate(**data)


@pytest.fixture
def sent_contract(contract_service, client_user, freelancer_user):
    contract = contract_service.create_contract(contract_payload(freelancer_user.id), client_user)
    return contract_service.send_contract(contract.public_id, client_user)


@pytest.fixture
def active_contract(contract_service, sent_contract, client_user, freelancer_user):
    """Fully signed contract with its workspace provisioned"""
    contract_service.sign_contract(sent_contract.public_id, "client-sig", client_user)
    contract, workspace = contract_service.sign_contract(sent_contract.public_id, "freelancer-sig", freelancer_user)
    assert workspace is not None
    return contract


@pytest.fixture
def workspace(active_contract, db):
    return WorkspaceRepository.get_by_contract_id(db, active_contract.id)


# =============================================================================
# FIXTURES: HTTP
# =============================================================================


@pytest.fixture
def api(session_factory, notifier, realtime, payments):
    """TestClient wired to the per-test database and recording collaborators"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_emitter] = lambda: notifier
    app.dependency_overrides[get_realtime_channel] = lambda: realtime
    app.dependency_overrides[get_payment_eligibility] = lambda: payments

    # No context manager: the lifespan would create tables on the default engine
    yield TestClient(app)

    app.dependency_overrides.clear()


def auth(user):
    return {"Authorization": f"Bearer {user.auth_uid}"}
