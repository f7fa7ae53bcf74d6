"""
tests.test_transfer_workflow

Transfer Workflow end to end against the reference registry.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from conftest import ADMIN_SEED, principal_for, register_parcel
from land_registry.auth.models import Role, Session
from land_registry.db.repositories.users import UserRepo
from land_registry.errors import BusinessErrorKind, TransportError
from land_registry.registry.schemas import TransactionKind, TransferRequest, TransferStatus
from land_registry.results import Err, Ok
from land_registry.workflow.transfer import NoPendingTransfer, PendingTransfer, TransferWorkflow


class CountingRegistry:
    """Wraps a RegistryClient and counts remote update calls."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self.updates = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def transfer_ownership(self, request):
        self.updates += 1
        return await self._inner.transfer_ownership(request)

    async def approve_transfer(self, parcel_id, new_owner):
        self.updates += 1
        return await self._inner.approve_transfer(parcel_id, new_owner)

    async def reject_transfer(self, parcel_id, reason):
        self.updates += 1
        return await self._inner.reject_transfer(parcel_id, reason)


class UnreachableViews(CountingRegistry):
    """Updates reach the registry; reloading pending transfers times out."""

    async def get_pending_transfers(self):
        raise TransportError("timeout")


@pytest.fixture
def owners():
    return principal_for("alice"), principal_for("bob")


@pytest.mark.asyncio
async def test_initiate_then_approve_moves_ownership(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")

    flow = TransferWorkflow(alice.registry())
    initiated = await flow.initiate_transfer(
        alice.current_session(), parcel, bob_id, 10, "sale", []
    )
    assert isinstance(initiated, Ok), initiated
    request = initiated.value
    assert request.parcel_id == parcel.id
    assert request.requested_by == alice_id
    assert request.new_owner == bob_id
    assert request.fee == Decimal("10")
    assert isinstance(flow.state_of(parcel.id), PendingTransfer)

    admin_flow = TransferWorkflow(admin.registry())
    pending = await admin_flow.refresh()
    assert [r.id for r in pending] == [request.id]

    approved = await admin_flow.approve_transfer(admin.current_session(), request)
    assert isinstance(approved, Ok)
    assert approved.value == request.id
    assert admin_flow.pending_transfers == []
    assert isinstance(admin_flow.state_of(parcel.id), NoPendingTransfer)

    refreshed = await admin.registry().get_parcel(parcel.id)
    assert refreshed.owner == bob_id
    last = refreshed.history[-1]
    assert last.kind is TransactionKind.transfer
    assert last.to_owner == bob_id
    assert last.from_owner == alice_id
    # The workflow refreshed its own view of the parcel as well.
    assert admin_flow.cached_parcel(parcel.id).owner == bob_id

    requests = await admin.registry().get_transfer_requests()
    assert [(r.id, r.status) for r in requests] == [(request.id, TransferStatus.approved)]


@pytest.mark.asyncio
async def test_rejection_keeps_owner_and_clears_pending(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    p1 = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")

    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), p1, bob_id, 0, "gift", []
    )
    assert isinstance(initiated, Ok)

    admin_flow = TransferWorkflow(admin.registry())
    rejected = await admin_flow.reject_transfer(
        admin.current_session(), initiated.value, "invalid docs"
    )
    assert isinstance(rejected, Ok)

    assert (await admin.registry().get_parcel(p1.id)).owner == alice_id
    pending = await admin.registry().get_pending_transfers()
    assert initiated.value.id not in {r.id for r in pending}

    (resolved,) = await admin.registry().get_transfer_requests()
    assert resolved.status is TransferStatus.rejected
    assert resolved.resolution_note == "invalid docs"
    assert resolved.resolved_by == principal_for(ADMIN_SEED)


@pytest.mark.asyncio
async def test_resolving_without_pending_transfer_is_invalid_state(admin, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    admin_flow = TransferWorkflow(admin.registry())

    # A request object the registry has never seen for this parcel.
    phantom = _request_for(parcel.id, alice_id, bob_id)
    approved = await admin_flow.approve_transfer(admin.current_session(), phantom)
    rejected = await admin_flow.reject_transfer(admin.current_session(), phantom, "n/a")
    for result in (approved, rejected):
        assert isinstance(result, Err)
        assert result.error.kind is BusinessErrorKind.invalid_state


@pytest.mark.asyncio
async def test_non_owner_is_refused_locally(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    mallory = await make_manager("mallory")

    registry = CountingRegistry(mallory.registry())
    flow = TransferWorkflow(registry)
    result = await flow.initiate_transfer(
        mallory.current_session(), parcel, principal_for("mallory"), 0, "mine now", []
    )
    assert isinstance(result, Err)
    assert result.error.kind is BusinessErrorKind.unauthorized
    assert registry.updates == 0


@pytest.mark.asyncio
async def test_logged_out_session_is_refused_locally(admin, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    registry = CountingRegistry(admin.registry())
    result = await TransferWorkflow(registry).initiate_transfer(
        Session.empty(), parcel, bob_id, 0, "gift"
    )
    assert isinstance(result, Err) and result.error.kind is BusinessErrorKind.unauthorized
    assert registry.updates == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("new_owner", "fee", "reason"),
    [
        ("not-a-principal", 0, "gift"),
        ("2vxsx-fae", 0, "gift"),
        (None, 0, "gift"),  # same as current owner
        ("bob", -1, "sale"),
        ("bob", "NaN", "sale"),
        ("bob", "ten", "sale"),
        ("bob", 5, "   "),
    ],
)
async def test_invalid_transfer_inputs_never_reach_registry(
    admin, make_manager, owners, new_owner, fee, reason
) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    recipient = {"bob": bob_id, None: alice_id}.get(new_owner, new_owner)

    registry = CountingRegistry(alice.registry())
    result = await TransferWorkflow(registry).initiate_transfer(
        alice.current_session(), parcel, recipient, fee, reason
    )
    assert isinstance(result, Err)
    assert result.error.kind is BusinessErrorKind.validation_failed
    assert registry.updates == 0


@pytest.mark.asyncio
async def test_second_initiation_while_pending_is_invalid_state(
    admin, make_manager, owners
) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    flow = TransferWorkflow(alice.registry())

    first = await flow.initiate_transfer(alice.current_session(), parcel, bob_id, 1, "sale")
    assert isinstance(first, Ok)
    second = await flow.initiate_transfer(
        alice.current_session(), parcel, principal_for("carol"), 2, "better offer"
    )
    assert isinstance(second, Err)
    assert second.error.kind is BusinessErrorKind.invalid_state
    assert [r.id for r in await flow.refresh()] == [first.value.id]


@pytest.mark.asyncio
async def test_duplicate_approval_is_invalid_state(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 10, "sale"
    )
    assert isinstance(initiated, Ok)

    admin_flow = TransferWorkflow(admin.registry())
    first = await admin_flow.approve_transfer(admin.current_session(), initiated.value)
    assert isinstance(first, Ok)
    replay = await admin_flow.approve_transfer(admin.current_session(), initiated.value)
    assert isinstance(replay, Err)
    assert replay.error.kind is BusinessErrorKind.invalid_state
    assert (await admin.registry().get_parcel(parcel.id)).owner == bob_id


@pytest.mark.asyncio
async def test_concurrent_resolutions_have_exactly_one_winner(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    assert isinstance(
        await admin.registry().assign_role(principal_for("rita"), Role.land_registrar), Ok
    )
    rita = await make_manager("rita")
    alice = await make_manager("alice")
    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 3, "sale"
    )
    assert isinstance(initiated, Ok)

    results = await asyncio.gather(
        TransferWorkflow(admin.registry()).approve_transfer(
            admin.current_session(), initiated.value
        ),
        TransferWorkflow(rita.registry()).reject_transfer(
            rita.current_session(), initiated.value, "conflicting claim"
        ),
    )
    winners = [r for r in results if isinstance(r, Ok)]
    losers = [r for r in results if isinstance(r, Err)]
    assert len(winners) == 1 and len(losers) == 1
    assert losers[0].error.kind is BusinessErrorKind.invalid_state

    (resolved,) = await admin.registry().get_transfer_requests()
    owner = (await admin.registry().get_parcel(parcel.id)).owner
    if resolved.status is TransferStatus.approved:
        assert owner == bob_id
    else:
        assert resolved.status is TransferStatus.rejected
        assert owner == alice_id


@pytest.mark.asyncio
async def test_revoked_parcel_accepts_no_transfer(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    flow = TransferWorkflow(alice.registry())
    initiated = await flow.initiate_transfer(alice.current_session(), parcel, bob_id, 0, "gift")
    assert isinstance(initiated, Ok)

    assert isinstance(await admin.registry().revoke_parcel(parcel.id, "fraud"), Ok)

    # Revocation cancelled the pending request.
    assert await admin.registry().get_pending_transfers() == []
    approve = await TransferWorkflow(admin.registry()).approve_transfer(
        admin.current_session(), initiated.value
    )
    assert isinstance(approve, Err) and approve.error.kind is BusinessErrorKind.invalid_state

    revoked = await alice.registry().get_parcel(parcel.id)
    # Caught locally from the parcel's status.
    local = await flow.initiate_transfer(alice.current_session(), revoked, bob_id, 0, "gift")
    assert isinstance(local, Err) and local.error.kind is BusinessErrorKind.invalid_state
    # And remotely when the caller's view is stale.
    remote = await flow.initiate_transfer(alice.current_session(), parcel, bob_id, 0, "gift")
    assert isinstance(remote, Err) and remote.error.kind is BusinessErrorKind.invalid_state


@pytest.mark.asyncio
async def test_unapproved_registration_is_not_transferable(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id, approve=False)
    alice = await make_manager("alice")
    result = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 0, "gift"
    )
    assert isinstance(result, Err)
    assert result.error.kind is BusinessErrorKind.invalid_state


@pytest.mark.asyncio
async def test_stale_roles_are_caught_by_the_registry(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 0, "gift"
    )
    assert isinstance(initiated, Ok)

    # Eve's cached session still says LandRegistrar, but the registry no longer agrees.
    eve = await make_manager("eve")
    stale = eve.current_session().with_roles(frozenset({Role.land_registrar, Role.user}))
    result = await TransferWorkflow(eve.registry()).approve_transfer(stale, initiated.value)
    assert isinstance(result, Err)
    assert result.error.kind is BusinessErrorKind.unauthorized
    assert (await admin.registry().get_parcel(parcel.id)).owner == alice_id


@pytest.mark.asyncio
async def test_plain_user_cannot_resolve_locally(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    flow = TransferWorkflow(alice.registry())
    initiated = await flow.initiate_transfer(alice.current_session(), parcel, bob_id, 0, "gift")
    assert isinstance(initiated, Ok)

    result = await flow.approve_transfer(alice.current_session(), initiated.value)
    assert isinstance(result, Err) and result.error.kind is BusinessErrorKind.unauthorized


@pytest.mark.asyncio
async def test_owner_role_cannot_resolve_locally(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 0, "gift"
    )
    assert isinstance(initiated, Ok)

    # A global Owner grant does not make its holder a transfer resolver.
    spy = CountingRegistry(alice.registry())
    flow = TransferWorkflow(spy)
    as_owner = Session.established(alice_id, frozenset({Role.owner, Role.user}))
    approved = await flow.approve_transfer(as_owner, initiated.value)
    rejected = await flow.reject_transfer(as_owner, initiated.value, "self-serve")
    for result in (approved, rejected):
        assert isinstance(result, Err) and result.error.kind is BusinessErrorKind.unauthorized
    assert spy.updates == 0


@pytest.mark.asyncio
async def test_registry_refuses_resolution_by_owner_role(app, admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 0, "gift"
    )
    assert isinstance(initiated, Ok)

    olga_id = principal_for("olga")
    async with app.state.sessionmaker() as session:
        await UserRepo(session).grant(principal=olga_id, role=Role.owner, granted_by=None)
        await session.commit()
    olga = await make_manager("olga")
    assert Role.owner in olga.current_session().roles

    approved = await olga.registry().approve_transfer(parcel.id, bob_id)
    rejected = await olga.registry().reject_transfer(parcel.id, "no")
    for result in (approved, rejected):
        assert isinstance(result, Err) and result.error.kind is BusinessErrorKind.unauthorized
    assert [r.id for r in await alice.registry().get_pending_transfers()] == [initiated.value.id]


@pytest.mark.asyncio
async def test_resolution_stands_when_views_cannot_reload(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    initiated = await TransferWorkflow(UnreachableViews(alice.registry())).initiate_transfer(
        alice.current_session(), parcel, bob_id, Decimal("2.50"), "sale", ["QmDeed"]
    )
    # Accepted remotely even though the pending view could not be reloaded.
    assert isinstance(initiated, Ok)
    assert initiated.value.parcel_id == parcel.id
    assert initiated.value.new_owner == bob_id
    pending = await admin.registry().get_pending_transfers()
    assert [r.id for r in pending] == [initiated.value.id]

    registry = UnreachableViews(admin.registry())
    approved = await TransferWorkflow(registry).approve_transfer(
        admin.current_session(), initiated.value
    )
    assert approved == Ok(initiated.value.id)
    assert registry.updates == 1
    assert (await admin.registry().get_parcel(parcel.id)).owner == bob_id


@pytest.mark.asyncio
async def test_participants_see_their_own_transfers(admin, make_manager, owners) -> None:
    alice_id, bob_id = owners
    parcel = await register_parcel(admin, alice_id)
    alice = await make_manager("alice")
    bob = await make_manager("bob")
    carol = await make_manager("carol")
    initiated = await TransferWorkflow(alice.registry()).initiate_transfer(
        alice.current_session(), parcel, bob_id, 0, "gift"
    )
    assert isinstance(initiated, Ok)

    assert [r.id for r in await bob.registry().get_pending_transfers()] == [initiated.value.id]
    assert await carol.registry().get_pending_transfers() == []


def _request_for(parcel_id, requested_by, new_owner) -> TransferRequest:
    return TransferRequest(
        id="00000000-0000-0000-0000-000000000000",
        parcel_id=parcel_id,
        requested_by=requested_by,
        new_owner=new_owner,
        fee=Decimal(0),
        reason="x",
        created_at=datetime.now(tz=UTC),
    )
