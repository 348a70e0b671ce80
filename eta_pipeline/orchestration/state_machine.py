"""
State machine for validating pipeline stage transitions.

Ensures stages run strictly in order: no stage is skipped and no stage
runs twice within one invocation.
"""
from enum import Enum
from typing import List, Optional
import logging


logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    """Pipeline stages in execution order."""
    COLLECT = "data_collection"
    VALIDATE = "data_validation"
    TRANSFORM = "data_transformation"
    ENRICH = "data_enrichment"
    PRESENT = "data_presentation"


STAGE_ORDER: List[PipelineStage] = list(PipelineStage)


class StageStateMachine:
    """
    Tracks and validates the current stage of one invocation.

    Transition rules:
    - Start -> COLLECT: Allowed
    - Stage N -> Stage N+1: Allowed
    - Anything else (skip, repeat, back-edge): Rejected
    """

    def __init__(self):
        self.current: Optional[PipelineStage] = None
        self.completed: List[PipelineStage] = []

    def validate_transition(
        self,
        current_stage: Optional[PipelineStage],
        new_stage: PipelineStage
    ) -> tuple[bool, Optional[str]]:
        """
        Validate if moving to a stage is allowed.

        Args:
            current_stage: Stage just finished (None before the first stage)
            new_stage: Proposed next stage

        Returns:
            Tuple of (is_valid, reason)
            - is_valid: True if transition is allowed
            - reason: Explanation if transition is rejected, None otherwise
        """
        if current_stage is None:
            if new_stage is STAGE_ORDER[0]:
                return True, None
            return False, f"Pipeline must start with {STAGE_ORDER[0].value}, not {new_stage.value}"

        expected = self.next_stage(current_stage)
        if expected is None:
            return False, f"No stage follows {current_stage.value}"
        if new_stage is not expected:
            return False, (
                f"Invalid transition: {current_stage.value} -> {new_stage.value} "
                f"(expected {expected.value})"
            )
        return True, None

    def advance(self, new_stage: PipelineStage) -> None:
        """
        Move to the next stage.

        Raises:
            RuntimeError: If the transition is not allowed
        """
        is_valid, reason = self.validate_transition(self.current, new_stage)
        if not is_valid:
            raise RuntimeError(reason)

        if self.current is not None:
            self.completed.append(self.current)
        logger.debug(f"Stage transition: {self.current.value if self.current else 'start'} -> {new_stage.value}")
        self.current = new_stage

    @staticmethod
    def next_stage(stage: PipelineStage) -> Optional[PipelineStage]:
        index = STAGE_ORDER.index(stage)
        if index + 1 < len(STAGE_ORDER):
            return STAGE_ORDER[index + 1]
        return None

    def is_terminal(self) -> bool:
        return self.current is STAGE_ORDER[-1]
