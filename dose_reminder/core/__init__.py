from .models import IntakeLogEntry, IntakeStatus, MedicationSchedule, ReminderBatch
from .state_machine import StateMachine, StateTransition, SessionState
from .planner import FirePoint, plan_fire_points, fire_points_for_schedule

__all__ = [
    "IntakeLogEntry", "IntakeStatus", "MedicationSchedule", "ReminderBatch",
    "StateMachine", "StateTransition", "SessionState",
    "FirePoint", "plan_fire_points", "fire_points_for_schedule",
]
