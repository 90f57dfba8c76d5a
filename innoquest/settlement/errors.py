class SettlementError(Exception):
    kind = "settlement_error"


class ConfigurationMissing(SettlementError):
    kind = "configuration_missing"


class SessionNotFound(SettlementError):
    kind = "session_not_found"


class SessionAlreadyCompleted(SettlementError):
    kind = "session_already_completed"


class InvalidSessionState(SettlementError):
    kind = "invalid_session_state"


class NoParticipants(SettlementError):
    kind = "no_participants"


class AdvancementInProgress(SettlementError):
    kind = "advancement_in_progress"


class PerTeamCalculationFailure(SettlementError):
    kind = "calculation_failure"

    def __init__(self, team_id: str, message: str):
        super().__init__(f"team {team_id}: {message}")
        self.team_id = team_id


class BalanceResetInconsistency(SettlementError):
    kind = "balance_reset_inconsistency"


class PersistenceFailure(SettlementError):
    kind = "persistence_failure"
