# memsfcr/app/dispatcher.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Optional, Union

from memsfcr.model import messages as m
from memsfcr.model.messages import UIAction
from memsfcr.protocol.defs import Command
from memsfcr.runtime.session import Session


class ControlSignal(str, Enum):
    """UI actions handled locally instead of being sent to the ECU."""
    READ_CONFIG = "read_config"
    CONNECT = "connect"
    PAUSE = "pause"
    RESUME = "resume"


Outcome = Union[Command, ControlSignal]

ACTION_MAP: Dict[str, Outcome] = {
    m.ACTION_READ_CONFIG: ControlSignal.READ_CONFIG,
    m.ACTION_CONNECT: ControlSignal.CONNECT,
    m.ACTION_REQUEST_DATAFRAME: Command.DATAFRAME,
    m.ACTION_PAUSE: ControlSignal.PAUSE,
    m.ACTION_RESUME: ControlSignal.RESUME,
    m.ACTION_RESET_ECU: Command.RESET_ECU,
    m.ACTION_CLEAR_FAULTS: Command.CLEAR_FAULTS,
    m.ACTION_RESET_ADJUSTMENTS: Command.RESET_ADJUSTMENTS,
    m.ACTION_INCREASE_IDLE_SPEED: Command.IDLE_SPEED_INCREMENT,
    m.ACTION_DECREASE_IDLE_SPEED: Command.IDLE_SPEED_DECREMENT,
    m.ACTION_INCREASE_IDLE_HOT: Command.IDLE_DECAY_INCREMENT,
    m.ACTION_DECREASE_IDLE_HOT: Command.IDLE_DECAY_DECREMENT,
    m.ACTION_INCREASE_FUEL_TRIM: Command.LTFT_INCREMENT,
    m.ACTION_DECREASE_FUEL_TRIM: Command.LTFT_DECREMENT,
    m.ACTION_INCREASE_IGNITION_ADVANCE: Command.IGNITION_ADVANCE_INCREMENT,
    m.ACTION_DECREASE_IGNITION_ADVANCE: Command.IGNITION_ADVANCE_DECREMENT,
}


class CommandDispatcher:
    """
    Maps UI actions to ECU commands or local control signals and applies them.
    """

    def __init__(
        self,
        *,
        session: Session,
        submit: Callable[[Command], bool],
        on_connect: Callable[[], None],
        on_read_config: Callable[[], None],
        logger: Optional[logging.Logger] = None,
    ):
        self._session = session
        self._submit = submit
        self._on_connect = on_connect
        self._on_read_config = on_read_config
        self._log = logger or logging.getLogger(__name__)

    @staticmethod
    def evaluate(action: UIAction) -> Optional[Outcome]:
        """Pure mapping; None for an unrecognised action kind."""
        return ACTION_MAP.get(action.action)

    def dispatch(self, action: UIAction) -> Optional[Outcome]:
        outcome = self.evaluate(action)

        if outcome is None:
            # unknown actions are ignored
            self._log.debug("UI_ACTION_IGNORED action=%r", action.action)
            return None

        if outcome == ControlSignal.PAUSE:
            self._session.pause()
            self._log.info("PAUSE_REQUESTED")
        elif outcome == ControlSignal.RESUME:
            self._session.resume()
            self._log.info("RESUME_REQUESTED")
        elif outcome == ControlSignal.CONNECT:
            self._log.info("CONNECT_REQUESTED")
            self._on_connect()
        elif outcome == ControlSignal.READ_CONFIG:
            self._on_read_config()
        else:
            self._log.info("UI_ACTION action=%s cmd=%s", action.action, outcome.value)
            self._submit(outcome)

        return outcome
