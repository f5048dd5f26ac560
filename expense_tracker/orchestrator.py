"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows the UI host calls:
1. Auth (sign in / sign up / reset password → session → audit log)
2. Expenses (form → validate → backend, or → pending queue when offline)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the backend without passing validation
- A mutation that cannot reach the backend is queued until it replays
  or its user signs out
- Every auth step is audited

Flows return (result, messages) tuples instead of raising for anything
a user can fix; remote failures the user cannot fix propagate as
RemoteError subclasses for the host to show as a banner.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, MutableMapping, NamedTuple, Optional, TypeVar, Union

import requests
import structlog

from expense_tracker.audit import AuthAuditLogger, lookup_public_ip
from expense_tracker.config import AppSettings, get_settings
from expense_tracker.events import ONLINE, SIGNED_OUT, ConnectivityMonitor, Event, EventBus
from expense_tracker.insights import (
    ExpenseFilter,
    budget_summary,
    export_csv,
    export_filename,
    filter_expenses,
    parse_csv,
)
from expense_tracker.models import (
    Budget,
    BudgetSummary,
    Expense,
    ExpenseCategory,
    ImportReport,
    PendingAction,
    RecurrenceFrequency,
    RecurringExpense,
    ReplayReport,
    Session,
    ValidationResult,
)
from expense_tracker.offline import (
    ActionDispatcher,
    PendingActionQueue,
    create_expense_action,
    delete_expense_action,
    delete_recurring_action,
    save_recurring_action,
    update_expense_action,
    upsert_budget_action,
)
from expense_tracker.services.local_storage import JsonFileStorage, LocalStorage, MemoryStorage
from expense_tracker.services.remote import (
    AuthBackendInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    InMemoryAuthBackend,
    InMemoryAuthLogStorage,
    InMemoryBudgetStorage,
    InMemoryExpenseStorage,
    InMemoryRecurringExpenseStorage,
    NetworkError,
    RecurringExpenseStorageInterface,
    RemoteError,
    SupabaseAuthLogStorage,
    SupabaseAuthService,
    SupabaseBudgetStorage,
    SupabaseClient,
    SupabaseExpenseStorage,
    SupabaseRecurringExpenseStorage,
)
from expense_tracker.session import SessionLifecycle, SessionStore
from expense_tracker.validation import (
    validate_expense_form,
    validate_password_reset,
    validate_sign_in_form,
    validate_sign_up_form,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class AuthFlow:
    """
    Orchestrates sign-in, sign-up, password reset and sign-out.

    Flow (sign-in):
    1. Validate → email and password present
    2. Authenticate → backend issues a session
    3. Establish → session persisted for 1 or 30 days (remember me)
    4. Audit → login / login_failed

    Password reset is two steps: request a one-time code, then verify
    it and set the new password. A verified code signs the user in.
    """

    def __init__(
        self,
        auth: AuthBackendInterface,
        lifecycle: SessionLifecycle,
        bus: EventBus,
        audit_logger: Optional[AuthAuditLogger] = None,
    ):
        self._auth = auth
        self._lifecycle = lifecycle
        self._audit_logger = audit_logger
        bus.subscribe(SIGNED_OUT, self._on_signed_out)

    def sign_in(
        self,
        email: str,
        password: str,
        remember_me: bool = False,
    ) -> tuple[Optional[Session], list[str]]:
        """
        Sign in with email and password.

        Returns:
            (session, messages); session is None when messages explain why
        """
        result = validate_sign_in_form(email, password)
        if not result.is_valid:
            return None, result.messages

        email = email.strip()
        try:
            session = self._auth.sign_in(email, password)
        except RemoteError as e:
            if self._audit_logger:
                self._audit_logger.log_login_failed(email, str(e))
            return None, [str(e)]

        session = self._lifecycle.establish(session, remember_me=remember_me)
        if self._audit_logger:
            self._audit_logger.log_login(email)
        return session, []

    def sign_up(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        remember_me: bool = False,
    ) -> tuple[Optional[Session], list[str]]:
        """
        Register a new account.

        Returns:
            (session, messages). With email confirmation enabled on the
            backend the account is created without a session: both are empty.
        """
        result = validate_sign_up_form(first_name, last_name, email, password)
        if not result.is_valid:
            return None, result.messages

        email = email.strip()
        try:
            session = self._auth.sign_up(email, password, first_name.strip(), last_name.strip())
        except RemoteError as e:
            if self._audit_logger:
                self._audit_logger.log_registration_failed(email, str(e))
            return None, [str(e)]

        if self._audit_logger:
            self._audit_logger.log_registration(email)
        if session is None:
            return None, []
        return self._lifecycle.establish(session, remember_me=remember_me), []

    def request_reset_code(self, email: str) -> list[str]:
        """Email a one-time code. Returns error messages (empty on success)."""
        if not email or not email.strip():
            return ["Email is required"]

        email = email.strip()
        try:
            self._auth.request_otp(email)
        except RemoteError as e:
            return [str(e)]

        if self._audit_logger:
            self._audit_logger.log_reset_code_requested(email)
        return []

    def reset_password(
        self,
        email: str,
        code: str,
        new_password: str,
        confirm_password: str,
    ) -> tuple[Optional[Session], list[str]]:
        """
        Verify the emailed code and set a new password.

        Returns:
            (session, messages)
        """
        result = validate_password_reset(code, new_password, confirm_password)
        if not result.is_valid:
            return None, result.messages

        email = email.strip()
        try:
            session = self._auth.verify_otp(email, code.strip())
            self._auth.update_password(session.access_token, new_password)
        except RemoteError as e:
            return None, [str(e)]

        session = self._lifecycle.establish(session)
        if self._audit_logger:
            self._audit_logger.log_password_reset(email)
        return session, []

    def sign_out(self) -> None:
        self._lifecycle.sign_out(reason="user")

    def _on_signed_out(self, event: Event) -> None:
        email = event.payload.get("email")
        if self._audit_logger and email:
            self._audit_logger.log_logout(email, expired=event.payload.get("reason") != "user")


class ExpenseFlow:
    """
    Orchestrates everything the signed-in user does with their data.

    Every mutation goes the same way:
    1. Validate → ValidationResult (stop here on errors)
    2. Offline? → enqueue a PendingAction
    3. Online → call the backend; a NetworkError also enqueues

    The flow holds a transient copy of the expense list. It is replaced
    on refresh() and patched after each successful mutation; queued
    mutations show up once the queue replays and the list is refreshed.
    """

    def __init__(
        self,
        expenses: ExpenseStorageInterface,
        lifecycle: SessionLifecycle,
        queue: PendingActionQueue,
        connectivity: ConnectivityMonitor,
        bus: Optional[EventBus] = None,
        budgets: Optional[BudgetStorageInterface] = None,
        recurring: Optional[RecurringExpenseStorageInterface] = None,
    ):
        self._expenses = expenses
        self._lifecycle = lifecycle
        self._queue = queue
        self._connectivity = connectivity
        self._budgets = budgets
        self._recurring = recurring
        self._cache: list[Expense] = []

        if bus is not None:
            # Subscribed after the queue, so the list is reloaded after a replay
            bus.subscribe(ONLINE, self._on_online)
            bus.subscribe(SIGNED_OUT, self._on_signed_out)

    # -------------------------------------------------------------------------
    # Expense list
    # -------------------------------------------------------------------------

    @property
    def expenses(self) -> list[Expense]:
        return list(self._cache)

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def refresh(self) -> list[Expense]:
        """
        Reload the expense list from the backend.

        Offline, the previous list is kept.
        """
        self._lifecycle.require_session()
        if not self._connectivity.is_online:
            return self.expenses
        try:
            self._cache = self._expenses.list_expenses()
        except NetworkError as e:
            logger.warning("expense_refresh_failed", error=str(e))
        return self.expenses

    def filtered(self, criteria: Optional[ExpenseFilter] = None) -> list[Expense]:
        if criteria is None:
            return self.expenses
        return filter_expenses(self._cache, criteria)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _submit(self, action: PendingAction, call: Callable[[], T]) -> tuple[Optional[T], bool]:
        """
        Run call() against the backend, or queue action instead.

        Returns:
            (call result, queued)
        """
        if not self._connectivity.is_online:
            self._queue.enqueue(action)
            return None, True
        try:
            return call(), False
        except NetworkError as e:
            logger.warning("mutation_deferred", operation=action.operation.value, error=str(e))
            self._queue.enqueue(action)
            return None, True

    def add_expense(
        self,
        amount: Union[str, Decimal, float, None],
        category: Union[str, ExpenseCategory, None],
        description: Optional[str],
        expense_date: Union[str, date, None],
    ) -> tuple[ValidationResult, Optional[Expense], bool]:
        """
        Validate and save a new expense.

        Returns:
            (validation_result, saved_expense, queued)
        """
        result = validate_expense_form(amount, category, description, expense_date)
        if not result.is_valid:
            return result, None, False

        user_id = self._lifecycle.require_session().user.id
        draft = result.draft
        expense, queued = self._submit(
            create_expense_action(draft, user_id),
            lambda: self._expenses.create_expense(draft, user_id),
        )
        if expense is not None:
            self._cache = sorted(self._cache + [expense], key=lambda e: e.date, reverse=True)
        return result, expense, queued

    def update_expense(
        self,
        expense_id: str,
        amount: Union[str, Decimal, float, None],
        category: Union[str, ExpenseCategory, None],
        description: Optional[str],
        expense_date: Union[str, date, None],
    ) -> tuple[ValidationResult, Optional[Expense], bool]:
        """
        Validate and save changes to an existing expense.

        Returns:
            (validation_result, updated_expense, queued)
        """
        result = validate_expense_form(amount, category, description, expense_date)
        if not result.is_valid:
            return result, None, False

        self._lifecycle.require_session()
        draft = result.draft
        expense, queued = self._submit(
            update_expense_action(expense_id, draft),
            lambda: self._expenses.update_expense(expense_id, draft),
        )
        if expense is not None:
            self._cache = sorted(
                [expense if e.id == expense_id else e for e in self._cache],
                key=lambda e: e.date,
                reverse=True,
            )
        return result, expense, queued

    def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense.

        Returns:
            True if the delete was queued rather than sent
        """
        self._lifecycle.require_session()
        _, queued = self._submit(
            delete_expense_action(expense_id),
            lambda: self._expenses.delete_expense(expense_id),
        )
        if not queued:
            self._cache = [e for e in self._cache if e.id != expense_id]
        return queued

    def replay_pending(self) -> ReplayReport:
        """Replay the offline queue now and reload the list."""
        report = self._queue.drain_and_replay()
        if report.succeeded and self._lifecycle.is_authenticated:
            self.refresh()
        return report

    # -------------------------------------------------------------------------
    # CSV
    # -------------------------------------------------------------------------

    def export(
        self,
        criteria: Optional[ExpenseFilter] = None,
        today: Optional[date] = None,
    ) -> tuple[str, str]:
        """
        Export the filtered list.

        Returns:
            (file_name, csv_text)
        """
        return export_filename(today), export_csv(self.filtered(criteria))

    def import_csv(self, text: Union[str, bytes]) -> ImportReport:
        """Insert one expense per well-formed row of CSV text or uploaded bytes."""
        user_id = self._lifecycle.require_session().user.id
        drafts, skipped = parse_csv(text)

        report = ImportReport(skipped=skipped)
        for draft in drafts:
            expense, queued = self._submit(
                create_expense_action(draft, user_id),
                lambda d=draft: self._expenses.create_expense(d, user_id),
            )
            if queued:
                report.queued += 1
            else:
                report.imported += 1

        logger.info(
            "csv_imported",
            imported=report.imported,
            queued=report.queued,
            skipped=report.skipped,
        )
        if report.imported:
            self.refresh()
        return report

    # -------------------------------------------------------------------------
    # Budget
    # -------------------------------------------------------------------------

    def get_budget(self) -> Optional[Budget]:
        if self._budgets is None:
            return None
        user_id = self._lifecycle.require_session().user.id
        return self._budgets.get_budget(user_id)

    def save_budget(self, amount: Union[str, Decimal, float]) -> tuple[Budget, bool]:
        """
        Set the monthly budget.

        Returns:
            (budget, queued)

        Raises:
            ValueError: If the amount is not a non-negative number
        """
        if self._budgets is None:
            raise RuntimeError("Budget storage is not configured")
        user_id = self._lifecycle.require_session().user.id
        budget = Budget(user_id=user_id, amount=Decimal(str(amount)))
        saved, queued = self._submit(
            upsert_budget_action(budget),
            lambda: self._budgets.upsert_budget(budget),
        )
        return saved or budget, queued

    def budget_summary(self, today: Optional[date] = None) -> Optional[BudgetSummary]:
        """This month's spending against the budget; None when no budget is set."""
        budget = self.get_budget()
        if budget is None:
            return None
        return budget_summary(self._cache, budget.amount, today)

    # -------------------------------------------------------------------------
    # Recurring expenses
    # -------------------------------------------------------------------------

    def list_recurring(self) -> list[RecurringExpense]:
        if self._recurring is None:
            return []
        user_id = self._lifecycle.require_session().user.id
        return self._recurring.list_recurring(user_id)

    def save_recurring(
        self,
        description: str,
        category: Union[str, ExpenseCategory],
        amount: Union[str, Decimal, float],
        frequency: Union[str, RecurrenceFrequency] = RecurrenceFrequency.MONTHLY,
        day_of_month: int = 1,
        item_id: Optional[str] = None,
    ) -> tuple[RecurringExpense, bool]:
        """
        Create (no item_id) or update a recurring expense.

        Returns:
            (recurring_expense, queued)

        Raises:
            pydantic.ValidationError: If a field is out of range
        """
        if self._recurring is None:
            raise RuntimeError("Recurring expense storage is not configured")
        user_id = self._lifecycle.require_session().user.id
        item = RecurringExpense(
            id=item_id,
            user_id=user_id,
            description=description,
            category=category,
            amount=Decimal(str(amount)),
            frequency=frequency,
            day_of_month=day_of_month,
        )
        call = self._recurring.update_recurring if item.id else self._recurring.create_recurring
        saved, queued = self._submit(save_recurring_action(item), lambda: call(item))
        return saved or item, queued

    def delete_recurring(self, item_id: str) -> bool:
        """Returns True if the delete was queued rather than sent."""
        if self._recurring is None:
            raise RuntimeError("Recurring expense storage is not configured")
        self._lifecycle.require_session()
        _, queued = self._submit(
            delete_recurring_action(item_id),
            lambda: self._recurring.delete_recurring(item_id),
        )
        return queued

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _on_online(self, event: Event) -> None:
        if self._lifecycle.is_authenticated:
            self.refresh()

    def _on_signed_out(self, event: Event) -> None:
        self._cache = []


class AppComponents(NamedTuple):
    auth_flow: AuthFlow
    expense_flow: ExpenseFlow
    lifecycle: SessionLifecycle
    queue: PendingActionQueue
    connectivity: ConnectivityMonitor
    bus: EventBus
    client: Optional[SupabaseClient]


def create_app_components(
    use_backend: bool = True,
    app_settings: Optional[AppSettings] = None,
    local_storage: Optional[LocalStorage] = None,
    http: Optional[requests.Session] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    The components hold one user's session, expense list and queue.
    Build one set per user; only the HTTP session may be shared.

    Args:
        use_backend: Whether to connect to the Supabase project.
                     Set to False for testing and demos; in-memory
                     backends are used instead.
        app_settings: Defaults to get_settings().app
        local_storage: Defaults to a JsonFileStorage at the configured
                       path (MemoryStorage without a backend)
        http: Connection pool for the Supabase client

    Returns:
        AppComponents, with the queue and session lifecycle started
    """
    app = app_settings or get_settings().app
    bus = EventBus()
    connectivity = ConnectivityMonitor(bus)
    client = None

    auth: AuthBackendInterface
    expenses: ExpenseStorageInterface
    budgets: BudgetStorageInterface
    recurring: RecurringExpenseStorageInterface

    if use_backend:
        try:
            client = SupabaseClient(app_settings=app, http=http)
        except Exception as e:
            # Backend not configured - continue without it
            logger.warning("backend_not_configured", error=str(e))
            client = None

    if client is not None:
        auth = SupabaseAuthService(client)
        expenses = SupabaseExpenseStorage(client)
        budgets = SupabaseBudgetStorage(client)
        recurring = SupabaseRecurringExpenseStorage(client)
        audit_logger = AuthAuditLogger(
            SupabaseAuthLogStorage(client),
            ip_lookup=(lambda: lookup_public_ip(app.ip_lookup_url)) if app.ip_lookup_url else None,
            user_agent=f"expense-tracker ({app.app_environment})",
        )
        storage = local_storage or JsonFileStorage(app.local_storage_file)
    else:
        auth = InMemoryAuthBackend()
        expenses = InMemoryExpenseStorage()
        budgets = InMemoryBudgetStorage()
        recurring = InMemoryRecurringExpenseStorage()
        audit_logger = AuthAuditLogger(InMemoryAuthLogStorage())
        storage = local_storage or MemoryStorage()

    dispatcher = ActionDispatcher(expenses, budgets=budgets, recurring=recurring)
    queue = PendingActionQueue(
        storage,
        dispatcher,
        bus=bus,
        storage_key=app.pending_actions_key,
        max_attempts=app.pending_action_max_attempts,
    )

    lifecycle = SessionLifecycle(
        auth,
        SessionStore(storage, key=app.auth_storage_key),
        bus,
        inactivity_timeout=app.inactivity_timeout,
        refresh_margin=app.refresh_margin,
        remember_me_lifetime=app.remember_me_lifetime,
        default_lifetime=app.default_session_lifetime,
        on_token_change=client.set_access_token if client is not None else None,
    )

    # Create flows
    auth_flow = AuthFlow(auth, lifecycle, bus, audit_logger=audit_logger)
    queue.start()
    # Queued work belongs to the user who signed out
    bus.subscribe(SIGNED_OUT, lambda event: _drop_pending(queue, event))
    expense_flow = ExpenseFlow(
        expenses,
        lifecycle,
        queue,
        connectivity,
        bus=bus,
        budgets=budgets,
        recurring=recurring,
    )
    lifecycle.start()

    return AppComponents(
        auth_flow=auth_flow,
        expense_flow=expense_flow,
        lifecycle=lifecycle,
        queue=queue,
        connectivity=connectivity,
        bus=bus,
        client=client,
    )


def _drop_pending(queue: PendingActionQueue, event: Event) -> None:
    if len(queue):
        logger.warning(
            "pending_actions_discarded_on_sign_out",
            count=len(queue),
            reason=event.payload.get("reason"),
        )
        queue.clear()


def get_session_components(
    state: MutableMapping,
    key: str = "components",
    **factory_kwargs,
) -> AppComponents:
    """
    Components for one user session, created on first use.

    The host passes the mapping that lives exactly as long as the user's
    session (st.session_state); factory_kwargs go to create_app_components.
    """
    components = state.get(key)
    if components is None:
        components = create_app_components(**factory_kwargs)
        state[key] = components
    return components
