# SPDX-License-Identifier: Apache-2.0

"""
Entity repository for users, blood requests and donation history.

The repository owns the three in-memory collections, writes them through
to the persistent store, and drives the request lifecycle. A single
re-entrant lock serializes every read-modify-write-persist sequence so a
concurrent caller never observes a partially-applied change.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Type, Union

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, ValidationError

from domain import lifecycle
from domain.eligibility import EligibilityResult, calculate_eligibility
from models.entities import (
    BloodRequest,
    DonorProfile,
    HistoryItem,
    RequesterProfile,
    User,
    normalize_email,
    utc_now
)
from models.enums import BloodGroup, HistoryType, RequestStatus, RequestUrgency, UserRole
from models.requests import (
    AddHistoryItemRequest,
    CreateBloodRequest,
    RegisterUserRequest,
    SwitchRoleRequest,
    UpdateProfileRequest,
    build_profile
)
from services.session import SessionManager
from services.store import (
    HISTORY_TABLE,
    REQUESTS_TABLE,
    SESSION_TABLE,
    USERS_TABLE,
    PersistenceReadFailure,
    PersistentStore
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_DISTANCE = "0.8 km"


class RepositoryError(Exception):
    """Base class for entity-level failures shown to the end user."""
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UserNotFound(RepositoryError):
    """No user matches the given email or id."""


class DuplicateEmail(RepositoryError):
    """Another user already registered this email."""


class RequestNotFound(RepositoryError):
    """No blood request matches the given id."""


class RequestNotOpen(RepositoryError):
    """The request is in a state that does not allow the operation."""


class NotRequestOwner(RepositoryError):
    """Only the requester (or an admin) may perform the operation."""


class InvalidProfileUpdate(RepositoryError):
    """The update is not valid for the user's role."""


class DonorNotEligible(RepositoryError):
    """The donor cannot accept requests right now."""
    
    def __init__(self, message: str, eligibility: Optional[EligibilityResult] = None):
        super().__init__(message)
        self.eligibility = eligibility


@dataclass
class LifecycleResult:
    """Result of an accept/ignore/cancel operation."""
    request: BloodRequest
    changed: bool
    history_item: Optional[HistoryItem] = None


def default_users() -> List[User]:
    """Demo users seeded into an empty store."""
    return [
        User(
            id="u1",
            name="John Doe",
            email="john@college.edu",
            phone="555-0101",
            college_id="STU-2024-001",
            location="North Campus",
            has_allergies=False,
            last_donation_date=date(2023, 10, 15),
            profile=DonorProfile(blood_group=BloodGroup.O_POS, is_available=True)
        ),
        User(
            id="u2",
            name="Jane Smith",
            email="jane@college.edu",
            phone="555-0102",
            college_id="STU-2024-002",
            profile=RequesterProfile()
        )
    ]


def default_requests(now: datetime) -> List[BloodRequest]:
    """Demo open requests, newest first."""
    return [
        BloodRequest(
            id="r2",
            requester_id="u3",
            requester_name="Admin Coord",
            blood_group=BloodGroup.O_NEG,
            units=1,
            hospital_name="University Medical Center",
            location="On Campus",
            urgency=RequestUrgency.CRITICAL,
            description="Critical emergency. O- donor needed immediately.",
            created_at=now,
            distance="0.5 km"
        ),
        BloodRequest(
            id="r1",
            requester_id="u2",
            requester_name="Jane Smith",
            blood_group=BloodGroup.A_POS,
            units=2,
            hospital_name="City General Hospital",
            location="Downtown",
            urgency=RequestUrgency.URGENT,
            description="Urgent need for A+ blood for surgery.",
            created_at=now - timedelta(days=1),
            distance="2.5 km"
        )
    ]


def default_history() -> List[HistoryItem]:
    """Demo history entries."""
    return [
        HistoryItem(id="h1", user_id="u1", type=HistoryType.DONATION, date=date(2023, 10, 15),
                    location="City General Hospital", units=1, status="Completed"),
        HistoryItem(id="h2", user_id="u1", type=HistoryType.DONATION, date=date(2023, 6, 20),
                    location="Campus Blood Drive", units=1, status="Completed"),
        HistoryItem(id="h3", user_id="u2", type=HistoryType.REQUEST, date=date(2023, 1, 10),
                    location="University Medical Center", units=2, status="Fulfilled"),
    ]


def _coerce(payload_cls: Type[BaseModel], payload: Union[BaseModel, Dict[str, Any]]):
    if isinstance(payload, payload_cls):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    return payload_cls.model_validate(payload)


class BloodConnectRepository:
    """
    Repository over the Users, Requests and History collections.
    
    Construct once at process start and hand the instance to callers.
    Returned entities are copies; mutating them has no effect on stored state.
    """
    
    def __init__(
        self,
        store: PersistentStore,
        seed: bool = True,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the repository and load collections from the store.
        
        Args:
            store: Persistent store backend
            seed: Use demo data when a table is missing or unreadable
            clock: Returns the current timestamp (defaults to UTC now)
        """
        self.store = store
        self.seed = seed
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._dirty: Set[str] = set()
        
        now = self._clock()
        self.users: List[User] = self._load_collection(USERS_TABLE, User, default_users)
        self.requests: List[BloodRequest] = self._load_collection(
            REQUESTS_TABLE, BloodRequest, lambda: default_requests(now)
        )
        self.history: List[HistoryItem] = self._load_collection(HISTORY_TABLE, HistoryItem, default_history)
        self.session = SessionManager(store)
        
        logger.info(
            "Repository loaded",
            extra={
                "users": len(self.users),
                "requests": len(self.requests),
                "history": len(self.history)
            }
        )
    
    # Loading and persistence
    
    def _load_collection(self, table: str, model: Type[BaseModel], seed_factory: Callable[[], list]) -> list:
        fallback = seed_factory() if self.seed else []
        raw = self.store.load(table, None)
        if raw is None:
            return fallback
        
        try:
            if not isinstance(raw, list):
                raise TypeError(f"expected a list, got {type(raw).__name__}")
            return [model.model_validate(doc) for doc in raw]
        except (TypeError, ValidationError) as e:
            failure = PersistenceReadFailure(table, e)
            logger.warning(
                f"{failure}; using default collection",
                extra={"error_type": "persistence-read-failure", "table": table}
            )
            # Keep the unreadable contents before the next save replaces them
            self.store.preserve(table, json.dumps(raw))
            return fallback
    
    def _snapshot(self, table: str) -> Any:
        if table == USERS_TABLE:
            return [u.to_document() for u in self.users]
        if table == REQUESTS_TABLE:
            return [r.to_document() for r in self.requests]
        if table == HISTORY_TABLE:
            return [h.to_document() for h in self.history]
        return self.session.current_id
    
    def _persist(self, *tables: str) -> bool:
        """Write the given tables plus any left dirty by earlier failures."""
        ok = True
        for table in sorted(set(tables) | self._dirty):
            value = self._snapshot(table)
            if table == SESSION_TABLE and value is None:
                saved = self.store.delete(table)
            else:
                saved = self.store.save(table, value)
            
            if saved:
                self._dirty.discard(table)
            else:
                self._dirty.add(table)
                ok = False
        
        if not ok:
            logger.warning(
                "Durability not guaranteed; continuing with in-memory state",
                extra={"dirty_tables": sorted(self._dirty)}
            )
        return ok
    
    def is_durable(self) -> bool:
        """False while any table failed its last save."""
        with self._lock:
            return not self._dirty
    
    def dirty_tables(self) -> List[str]:
        with self._lock:
            return sorted(self._dirty)
    
    def health(self) -> Dict[str, Any]:
        """Store status summary for health checks."""
        with self._lock:
            return {
                "backend": self.store.backend_name,
                "available": self.store.is_available(),
                "durable": not self._dirty,
                "dirtyTables": sorted(self._dirty)
            }
    
    def today(self) -> date:
        return self._clock().date()
    
    # Lookups (callers hold the lock)
    
    def _find_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)
    
    def _find_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users if u.matches_email(email)), None)
    
    def _user_index(self, user_id: str) -> Tuple[int, User]:
        for index, user in enumerate(self.users):
            if user.id == user_id:
                return index, user
        raise UserNotFound(f"User not found: {user_id}")
    
    def _request_index(self, request_id: str) -> Tuple[int, BloodRequest]:
        for index, request in enumerate(self.requests):
            if request.id == request_id:
                return index, request
        raise RequestNotFound(f"Blood request not found: {request_id}")
    
    def _check_donation_date(self, value: Optional[date]) -> None:
        if value is not None and value > self.today():
            raise InvalidProfileUpdate("Last donation date cannot be in the future")
    
    def _acting_user_id(self, user_id: Optional[str]) -> str:
        acting = user_id or self.session.current_id
        if not acting:
            raise UserNotFound("No user given and no active session")
        return acting
    
    def _replace_user(self, index: int, user: User) -> None:
        users = list(self.users)
        users[index] = user
        self.users = users
        self._persist(USERS_TABLE)
        self.session.refresh(user)
    
    # Session
    
    def restore_session(self) -> Optional[User]:
        """Restore the session saved by a previous process."""
        with self._lock:
            user = self.session.restore(self._find_user)
            return user.model_copy(deep=True) if user else None
    
    def current_user(self) -> Optional[User]:
        with self._lock:
            user = self.session.current()
            return user.model_copy(deep=True) if user else None
    
    def login(self, email: str, password: Optional[str] = None) -> User:
        """
        Log in by email (case-insensitive). The password is not checked.
        
        Raises:
            UserNotFound: If no user has this email
        """
        with tracer.start_as_current_span("repository.login") as span, self._lock:
            user = self._find_user_by_email(email)
            if user is None:
                span.set_status(Status(StatusCode.ERROR, "User not found"))
                logger.warning("Login attempt with unknown email", extra={"email": normalize_email(email)})
                raise UserNotFound("User not found. Please register first.")
            
            if not self.session.set(user):
                self._dirty.add(SESSION_TABLE)
            span.set_attribute("user.id", user.id)
            return user.model_copy(deep=True)
    
    def logout(self) -> None:
        with self._lock:
            if self.session.clear():
                self._dirty.discard(SESSION_TABLE)
            else:
                self._dirty.add(SESSION_TABLE)
    
    def register(self, payload: Union[RegisterUserRequest, Dict[str, Any]]) -> User:
        """
        Register a new user and log them in.
        
        Raises:
            DuplicateEmail: If the email is already registered
            pydantic.ValidationError: If the payload is invalid
        """
        payload = _coerce(RegisterUserRequest, payload)
        
        with tracer.start_as_current_span("repository.register") as span, self._lock:
            if self._find_user_by_email(payload.email) is not None:
                span.set_status(Status(StatusCode.ERROR, "Duplicate email"))
                raise DuplicateEmail("This email is already registered.")
            self._check_donation_date(payload.last_donation_date)
            
            user = User(**payload.user_fields(), profile=payload.to_profile())
            self.users = [*self.users, user]
            self._persist(USERS_TABLE)
            if not self.session.set(user):
                self._dirty.add(SESSION_TABLE)
            
            span.set_attributes({"user.id": user.id, "user.role": user.role})
            logger.info("User registered", extra={"user_id": user.id, "role": user.role})
            return user.model_copy(deep=True)
    
    # Users
    
    def get_user(self, user_id: str) -> User:
        with self._lock:
            _, user = self._user_index(user_id)
            return user.model_copy(deep=True)
    
    def list_users(self) -> List[User]:
        with self._lock:
            return [u.model_copy(deep=True) for u in self.users]
    
    def update_user_profile(self, user_id: str, partial: Union[UpdateProfileRequest, Dict[str, Any]]) -> User:
        """
        Merge the provided fields into a user record.
        
        Raises:
            UserNotFound: If the user does not exist
            DuplicateEmail: If the new email belongs to another user
            InvalidProfileUpdate: If donor fields are given for a non-donor
        """
        partial = _coerce(UpdateProfileRequest, partial)
        user_changes = partial.user_changes()
        donor_changes = partial.donor_changes()
        donor_only = partial.donor_only_fields()
        
        with tracer.start_as_current_span("repository.update_user_profile") as span, self._lock:
            span.set_attribute("user.id", user_id)
            index, user = self._user_index(user_id)
            
            if donor_only and not user.is_donor:
                raise InvalidProfileUpdate(f"Fields only valid for donors: {', '.join(sorted(donor_only))}")
            self._check_donation_date(user_changes.get("last_donation_date"))
            
            if "email" in user_changes:
                owner = self._find_user_by_email(user_changes["email"])
                if owner is not None and owner.id != user.id:
                    raise DuplicateEmail("This email is already registered.")
            
            profile = user.profile
            if donor_changes:
                profile = DonorProfile.model_validate({**user.profile.model_dump(), **donor_changes})
            
            try:
                updated = User.model_validate({**user.model_dump(), **user_changes, "profile": profile.model_dump()})
            except ValidationError as e:
                raise InvalidProfileUpdate(f"Invalid profile update: {e.errors()[0]['msg']}")
            
            self._replace_user(index, updated)
            logger.info(
                "User profile updated",
                extra={"user_id": user_id, "fields": sorted([*user_changes, *donor_changes])}
            )
            return updated.model_copy(deep=True)
    
    def switch_role(self, user_id: str, role: Union[UserRole, str], blood_group: Optional[str] = None) -> User:
        """
        Switch a user's role, rebuilding the role-specific profile.
        
        Switching to DONOR requires a blood group; switching away from DONOR
        drops the donor profile. The last donation date stays on the user so
        the cooldown survives a round trip.
        """
        payload = _coerce(SwitchRoleRequest, {"role": role, "blood_group": blood_group})
        
        with self._lock:
            index, user = self._user_index(user_id)
            if user.role == payload.role:
                return user.model_copy(deep=True)
            
            try:
                profile = build_profile(payload.role, payload.blood_group)
            except ValueError as e:
                raise InvalidProfileUpdate(str(e))
            
            updated = user.model_copy(update={"profile": profile}, deep=True)
            self._replace_user(index, updated)
            logger.info("User role switched", extra={"user_id": user_id, "role": payload.role})
            return updated.model_copy(deep=True)
    
    def eligibility_for(self, user_id: str, today: Optional[date] = None) -> EligibilityResult:
        """Eligibility of a stored user on the given (or current) date."""
        with self._lock:
            _, user = self._user_index(user_id)
            return calculate_eligibility(user.has_allergies, user.last_donation_date, today or self.today())
    
    # Requests
    
    def list_requests(self, viewer_id: Optional[str] = None, status: Optional[str] = None) -> List[BloodRequest]:
        """
        Snapshot of requests, newest first.
        
        Args:
            viewer_id: Exclude requests this user has ignored
            status: Only include requests with this status
        """
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self.requests
                if (viewer_id is None or not r.is_hidden_for(viewer_id))
                and (status is None or r.status == status)
            ]
    
    def get_request(self, request_id: str) -> BloodRequest:
        with self._lock:
            _, request = self._request_index(request_id)
            return request.model_copy(deep=True)
    
    def create_request(self, draft: Union[CreateBloodRequest, Dict[str, Any]]) -> BloodRequest:
        """
        Post a new blood request and log it in the requester's history.
        
        Raises:
            UserNotFound: If the requester does not exist
        """
        draft = _coerce(CreateBloodRequest, draft)
        
        with tracer.start_as_current_span("repository.create_request") as span, self._lock:
            requester_id = self._acting_user_id(draft.requester_id)
            _, requester = self._user_index(requester_id)
            
            request = BloodRequest(
                requester_id=requester.id,
                requester_name=requester.name,
                blood_group=draft.blood_group,
                units=draft.units,
                hospital_name=draft.hospital_name,
                location=draft.location,
                urgency=draft.urgency,
                description=draft.description,
                created_at=self._clock(),
                distance=DEFAULT_DISTANCE
            )
            entry = lifecycle.build_request_history(request, self.today())
            
            self.requests = [request, *self.requests]
            self.history = [entry, *self.history]
            self._persist(REQUESTS_TABLE, HISTORY_TABLE)
            
            span.set_attributes({
                "request.id": request.id,
                "request.blood_group": request.blood_group,
                "request.urgency": request.urgency
            })
            logger.info("Blood request created", extra={"request_id": request.id, "requester_id": requester.id})
            return request.model_copy(deep=True)
    
    def accept_request(self, request_id: str, donor_id: Optional[str] = None) -> LifecycleResult:
        """
        Accept a request on behalf of a donor.
        
        Fulfills the request and records one Donation history entry. Accepting
        a request the same donor already fulfilled is a no-op.
        
        Raises:
            RequestNotFound: Unknown request
            UserNotFound: Unknown donor
            RequestNotOpen: Request fulfilled by someone else or cancelled
            DonorNotEligible: Donor role, availability or eligibility check failed
        """
        with tracer.start_as_current_span("repository.accept_request") as span, self._lock:
            index, request = self._request_index(request_id)
            _, donor = self._user_index(self._acting_user_id(donor_id))
            span.set_attributes({"request.id": request_id, "donor.id": donor.id})
            
            if lifecycle.is_repeat_accept(request, donor.id):
                span.set_attribute("lifecycle.result", "noop")
                return LifecycleResult(request=request.model_copy(deep=True), changed=False)
            
            if not request.is_open():
                span.set_status(Status(StatusCode.ERROR, "Request not open"))
                raise RequestNotOpen(f"Request {request_id} is {request.status}")
            
            self._check_can_donate(donor, request)
            
            fulfilled = lifecycle.fulfill(request, donor.id, self._clock())
            entry = lifecycle.build_donation_history(fulfilled, donor.id, self.today())
            
            requests = list(self.requests)
            requests[index] = fulfilled
            self.requests = requests
            self.history = [entry, *self.history]
            self._persist(REQUESTS_TABLE, HISTORY_TABLE)
            
            span.set_attribute("lifecycle.result", "fulfilled")
            logger.info("Blood request accepted", extra={"request_id": request_id, "donor_id": donor.id})
            return LifecycleResult(
                request=fulfilled.model_copy(deep=True),
                changed=True,
                history_item=entry
            )
    
    def _check_can_donate(self, donor: User, request: BloodRequest) -> None:
        if not donor.is_donor:
            raise DonorNotEligible("Only donors can accept blood requests")
        if donor.id == request.requester_id:
            raise DonorNotEligible("Requesters cannot accept their own request")
        
        eligibility = calculate_eligibility(donor.has_allergies, donor.last_donation_date, self.today())
        if not eligibility.is_eligible:
            raise DonorNotEligible(eligibility.reason, eligibility)
        if not donor.is_available:
            raise DonorNotEligible("Donor is marked unavailable", eligibility)
    
    def ignore_request(self, request_id: str, donor_id: Optional[str] = None) -> LifecycleResult:
        """Hide a request from one donor's view. The status is unchanged."""
        with self._lock:
            index, request = self._request_index(request_id)
            _, donor = self._user_index(self._acting_user_id(donor_id))
            
            hidden = lifecycle.hide_for(request, donor.id)
            if hidden is request:
                return LifecycleResult(request=request.model_copy(deep=True), changed=False)
            
            requests = list(self.requests)
            requests[index] = hidden
            self.requests = requests
            self._persist(REQUESTS_TABLE)
            logger.info("Blood request ignored", extra={"request_id": request_id, "donor_id": donor.id})
            return LifecycleResult(request=hidden.model_copy(deep=True), changed=True)
    
    def cancel_request(self, request_id: str, user_id: Optional[str] = None) -> LifecycleResult:
        """
        Cancel an open request. Only the requester or an admin may cancel.
        
        Raises:
            NotRequestOwner: Acting user is neither requester nor admin
            RequestNotOpen: Request already fulfilled
        """
        with self._lock:
            index, request = self._request_index(request_id)
            _, actor = self._user_index(self._acting_user_id(user_id))
            
            if actor.id != request.requester_id and actor.role != UserRole.ADMIN.value:
                raise NotRequestOwner("Only the requester can cancel this request")
            
            if request.status == RequestStatus.CANCELLED.value:
                return LifecycleResult(request=request.model_copy(deep=True), changed=False)
            
            try:
                cancelled = lifecycle.cancel(request, self._clock())
            except lifecycle.InvalidTransition as e:
                raise RequestNotOpen(str(e))
            
            requests = list(self.requests)
            requests[index] = cancelled
            self.requests = requests
            self._persist(REQUESTS_TABLE)
            logger.info("Blood request cancelled", extra={"request_id": request_id, "user_id": actor.id})
            return LifecycleResult(request=cancelled.model_copy(deep=True), changed=True)
    
    # History
    
    def list_history(self, user_id: str) -> List[HistoryItem]:
        """History entries owned by a user, most recent date first."""
        with self._lock:
            owned = [h for h in self.history if h.user_id == user_id]
        return sorted(owned, key=lambda h: h.date, reverse=True)
    
    def add_history_item(self, draft: Union[AddHistoryItemRequest, Dict[str, Any]]) -> HistoryItem:
        """Append a history entry. The owning user id is not validated."""
        draft = _coerce(AddHistoryItemRequest, draft)
        
        with self._lock:
            entry = HistoryItem(
                user_id=draft.user_id,
                type=draft.type,
                date=draft.date or self.today(),
                location=draft.location,
                units=draft.units,
                status=draft.status
            )
            self.history = [entry, *self.history]
            self._persist(HISTORY_TABLE)
            return entry
