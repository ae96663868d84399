import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from chorebank.core.errors import HttpStatusForError, LedgerError
from chorebank.core.storage import BuildStorageReadyCheck
from chorebank.db import GetDb
from chorebank.modules.ledger.models import LedgerTransaction, Profile, SavingsGoal
from chorebank.modules.ledger.schemas import (
    ActivityEntryOut,
    AdjustmentCreate,
    AdvanceCreate,
    GoalAllocationCreate,
    HouseholdActivityResponse,
    LedgerHistoryResponse,
    LedgerMutationOut,
    ParseAdvanceCategory,
    ProfileCreate,
    ProfileOut,
    SavingsGoalCreate,
    SavingsGoalOut,
    SavingsGoalUpdate,
    TaskPaymentCreate,
    TransactionOut,
    WithdrawalFinalize,
    WithdrawalRequestCreate,
)
from chorebank.modules.ledger.services import goals_service, ledger_service, profiles_service
from chorebank.modules.ledger.services.ledger_service import LedgerMutationResult
from chorebank.modules.ledger.services.planning import GoalView, LedgerImpactCents, ProfileView
from chorebank.modules.ledger.services.store import GetLedgerStore, LedgerStore
from chorebank.modules.ledger.utils.config import Settings
from chorebank.modules.ledger.utils.money import CentsToAmount
from chorebank.modules.notifications.services import EmitTaskPaidNotification
from chorebank.modules.tasks.models import Task

logger = logging.getLogger("ledger")

EnsureLedgerStorageReady = BuildStorageReadyCheck(
    "ledger",
    [Profile, SavingsGoal, LedgerTransaction, Task],
)

router = APIRouter(
    prefix="/api/households/{household_id}/profiles",
    tags=["ledger"],
    dependencies=[Depends(EnsureLedgerStorageReady)],
)

household_router = APIRouter(
    prefix="/api/households/{household_id}",
    tags=["ledger"],
    dependencies=[Depends(EnsureLedgerStorageReady)],
)


def _handle_db_error(exc: Exception) -> None:
    logger.exception("ledger database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Ledger storage not initialized. Run alembic upgrade head.",
    ) from exc


def _handle_ledger_error(exc: LedgerError) -> None:
    status_code = HttpStatusForError(exc)
    if status_code >= 500:
        logger.error("ledger operation failed: %s", exc)
    else:
        logger.info("ledger operation rejected status=%s: %s", status_code, exc)
    raise HTTPException(status_code=status_code, detail=str(exc)) from exc


def _BuildMutationOut(result: LedgerMutationResult) -> LedgerMutationOut:
    return LedgerMutationOut(
        TransactionId=result.TransactionId,
        NextBalanceCents=result.NextBalanceCents,
        NextBalance=CentsToAmount(result.NextBalanceCents),
    )


def _BuildGoalOut(goal: GoalView) -> SavingsGoalOut:
    return SavingsGoalOut(
        GoalId=goal.GoalId,
        Name=goal.Name,
        TargetAmountCents=goal.TargetAmountCents,
        CurrentAmountCents=goal.CurrentAmountCents,
        Status=goal.Status,
        SortOrder=goal.SortOrder,
    )


def _BuildProfileOut(profile: ProfileView) -> ProfileOut:
    balance_cents = profile.CurrentBalanceCents
    return ProfileOut(
        HouseholdId=profile.HouseholdId,
        ProfileId=profile.ProfileId,
        Name=profile.Name,
        BalanceCents=balance_cents,
        Balance=CentsToAmount(balance_cents),
        Goals=[_BuildGoalOut(goal) for goal in profile.Goals],
    )


def _TransactionFields(entry: LedgerTransaction) -> dict:
    return dict(
        Id=entry.Id,
        HouseholdId=entry.HouseholdId,
        ProfileId=entry.ProfileId,
        AmountCents=entry.AmountCents,
        Amount=float(entry.Amount),
        Memo=entry.Memo,
        Type=entry.Type,
        Status=entry.Status,
        Category=entry.Category,
        TaskId=entry.TaskId,
        GoalId=entry.GoalId,
        BalanceAfterCents=entry.BalanceAfterCents,
        BalanceAfter=float(entry.BalanceAfter),
        ImpactCents=LedgerImpactCents(entry.Type, entry.Status, entry.AmountCents),
        Date=entry.Date,
        PaidAt=entry.PaidAt,
        RejectedAt=entry.RejectedAt,
    )


def _BuildTransactionOut(entry: LedgerTransaction) -> TransactionOut:
    return TransactionOut(**_TransactionFields(entry))


@router.post("", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
def CreateProfile(
    household_id: str,
    payload: ProfileCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> ProfileOut:
    try:
        profile = profiles_service.CreateProfile(
            store,
            household_id=household_id,
            name=payload.Name,
            profile_id=payload.ProfileId,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildProfileOut(profile)


@router.get("/{profile_id}", response_model=ProfileOut)
def GetProfile(
    household_id: str,
    profile_id: str,
    db: Session = Depends(GetDb),
) -> ProfileOut:
    try:
        return _BuildProfileOut(profiles_service.GetProfile(db, household_id, profile_id))
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{profile_id}/ledger", response_model=LedgerHistoryResponse)
def GetLedger(
    household_id: str,
    profile_id: str,
    limit: int = Settings.HistoryLimit,
    db: Session = Depends(GetDb),
) -> LedgerHistoryResponse:
    try:
        profile = profiles_service.GetProfile(db, household_id, profile_id)
        entries = profiles_service.ListTransactions(db, household_id, profile_id, limit=max(1, min(limit, 500)))
        balance_cents = profile.CurrentBalanceCents
        return LedgerHistoryResponse(
            BalanceCents=balance_cents,
            Balance=CentsToAmount(balance_cents),
            Entries=[_BuildTransactionOut(entry) for entry in entries],
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post(
    "/{profile_id}/ledger/task-payments",
    response_model=LedgerMutationOut,
    status_code=status.HTTP_201_CREATED,
)
def PayTask(
    household_id: str,
    profile_id: str,
    payload: TaskPaymentCreate,
    background_tasks: BackgroundTasks,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.RecordTaskPayment(
            store,
            household_id=household_id,
            profile_id=profile_id,
            task_id=payload.TaskId,
            amount_cents=payload.AmountCents,
            memo=payload.Memo,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)

    background_tasks.add_task(
        EmitTaskPaidNotification,
        store.SessionFactory,
        household_id=household_id,
        task_id=payload.TaskId,
        target_profile_id=profile_id,
        amount_cents=payload.AmountCents,
    )
    return _BuildMutationOut(result)


@router.post(
    "/{profile_id}/ledger/advances",
    response_model=LedgerMutationOut,
    status_code=status.HTTP_201_CREATED,
)
def AddAdvance(
    household_id: str,
    profile_id: str,
    payload: AdvanceCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.RecordAdvance(
            store,
            household_id=household_id,
            profile_id=profile_id,
            amount_cents=payload.AmountCents,
            memo=payload.Memo,
            category=ParseAdvanceCategory(payload.Category),
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@router.post(
    "/{profile_id}/ledger/adjustments",
    response_model=LedgerMutationOut,
    status_code=status.HTTP_201_CREATED,
)
def AddAdjustment(
    household_id: str,
    profile_id: str,
    payload: AdjustmentCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.RecordManualAdjustment(
            store,
            household_id=household_id,
            profile_id=profile_id,
            amount_cents=payload.AmountCents,
            memo=payload.Memo,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@router.post(
    "/{profile_id}/ledger/withdrawals",
    response_model=LedgerMutationOut,
    status_code=status.HTTP_201_CREATED,
)
def RequestWithdrawal(
    household_id: str,
    profile_id: str,
    payload: WithdrawalRequestCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.RecordWithdrawalRequest(
            store,
            household_id=household_id,
            profile_id=profile_id,
            amount_cents=payload.AmountCents,
            memo=payload.Memo,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@router.post("/{profile_id}/ledger/withdrawals/{transaction_id}/finalize", response_model=LedgerMutationOut)
def FinalizeWithdrawal(
    household_id: str,
    profile_id: str,
    transaction_id: str,
    payload: WithdrawalFinalize | None = None,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.FinalizeWithdrawal(
            store,
            household_id=household_id,
            profile_id=profile_id,
            transaction_id=transaction_id,
            amount_cents=payload.AmountCents if payload else None,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@router.post("/{profile_id}/ledger/withdrawals/{transaction_id}/reject", response_model=LedgerMutationOut)
def RejectWithdrawal(
    household_id: str,
    profile_id: str,
    transaction_id: str,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.RejectWithdrawal(
            store,
            household_id=household_id,
            profile_id=profile_id,
            transaction_id=transaction_id,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@router.post(
    "/{profile_id}/ledger/goal-allocations",
    response_model=LedgerMutationOut,
    status_code=status.HTTP_201_CREATED,
)
def AllocateToGoal(
    household_id: str,
    profile_id: str,
    payload: GoalAllocationCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.RecordGoalAllocation(
            store,
            household_id=household_id,
            profile_id=profile_id,
            goal_id=payload.GoalId,
            amount_cents=payload.AmountCents,
            memo=payload.Memo,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@router.post("/{profile_id}/goals", response_model=SavingsGoalOut, status_code=status.HTTP_201_CREATED)
def AddGoal(
    household_id: str,
    profile_id: str,
    payload: SavingsGoalCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> SavingsGoalOut:
    try:
        goal = goals_service.AddSavingsGoal(
            store,
            household_id=household_id,
            profile_id=profile_id,
            name=payload.Name,
            target_amount_cents=payload.TargetAmountCents,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildGoalOut(goal)


@router.put("/{profile_id}/goals/{goal_id}", response_model=SavingsGoalOut)
def UpdateGoal(
    household_id: str,
    profile_id: str,
    goal_id: str,
    payload: SavingsGoalUpdate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> SavingsGoalOut:
    try:
        goal = goals_service.UpdateSavingsGoal(
            store,
            household_id=household_id,
            profile_id=profile_id,
            goal_id=goal_id,
            name=payload.Name,
            target_amount_cents=payload.TargetAmountCents,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildGoalOut(goal)


@router.post("/{profile_id}/goals/{goal_id}/claim", response_model=SavingsGoalOut)
def ClaimGoal(
    household_id: str,
    profile_id: str,
    goal_id: str,
    store: LedgerStore = Depends(GetLedgerStore),
) -> SavingsGoalOut:
    try:
        goal = goals_service.ClaimSavingsGoal(
            store,
            household_id=household_id,
            profile_id=profile_id,
            goal_id=goal_id,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildGoalOut(goal)


@router.delete("/{profile_id}/goals/{goal_id}", response_model=LedgerMutationOut)
def DeleteGoal(
    household_id: str,
    profile_id: str,
    goal_id: str,
    store: LedgerStore = Depends(GetLedgerStore),
) -> LedgerMutationOut:
    try:
        result = ledger_service.ReleaseSavingsGoal(
            store,
            household_id=household_id,
            profile_id=profile_id,
            goal_id=goal_id,
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildMutationOut(result)


@household_router.get("/activity", response_model=HouseholdActivityResponse)
def GetHouseholdActivity(
    household_id: str,
    limit: int = Settings.ActivityLimit,
    db: Session = Depends(GetDb),
) -> HouseholdActivityResponse:
    try:
        activity = profiles_service.ListHouseholdActivity(db, household_id, limit=min(limit, 200))
        return HouseholdActivityResponse(
            Entries=[
                ActivityEntryOut(**_TransactionFields(item.Transaction), ProfileName=item.ProfileName)
                for item in activity
            ]
        )
    except LedgerError as exc:
        _handle_ledger_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
