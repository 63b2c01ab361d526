# modtools/bisect/harness.py
from __future__ import annotations
import asyncio
import codecs
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import psutil

from modtools.app.settings import HarnessSettings
from modtools.core.errors import CommandError
from modtools.core.process import killProcesses, killProcessGroup, killProcessTree, newProcessGroupOptions

logger = logging.getLogger(__name__)

__all__ = ["TrialOutcome", "TrialReport", "GameHarness"]


TrialOutcome = Literal["success", "crash", "completed", "exited", "timeout", "error"]

# Tail of the output kept between reads so a marker split across chunks still matches
OUTPUT_TAIL_CHARS = 4096
READ_CHUNK_BYTES = 4096
REAP_TIMEOUT_SECONDS = 5.0
OUTPUT_DRAIN_SECONDS = 1.0
DESCENDANT_POLL_SECONDS = 0.25



@dataclass(frozen=True)
class TrialReport:
    roundNumber: int
    outcome: TrialOutcome
    exitCode: int | None = None
    fps: float | None = None
    detail: str = ""

    @property
    def crashed(self) -> bool:
        return self.outcome == "crash"



class GameHarness:
    """
    Runs the game once per trial and classifies what happened.

    The game is launched with its output captured; if a control command is
    configured it is started after `launchDelaySeconds`. The first of these
    decides the trial:

      success marker in the game output     -> "success" (fps captured)
      crash exit code (control or game)     -> "crash"
      control exits with any other code     -> "completed"
      game exits without a control command  -> "exited"
      wall-clock timeout                    -> "timeout"
      launch or stream failure              -> "error"

    Only "crash" counts as a failure. The bot config file, when configured, is
    replaced for the duration of the trial and restored afterwards.
    """

    def __init__(
        self,
        gameCommand: list[str],
        *,
        gameEnv: dict[str, str] | None = None,
        controlCommand: list[str] | None = None,
        botConfigPath: str | Path | None = None,
        botConfig: str | None = None,
        successPattern: str = r"BENCH:FPS:(?P<fps>\d+(?:\.\d+)?)",
        crashExitCode: int = 42,
        timeoutSeconds: float = 300.0,
        launchDelaySeconds: float = 10.0,
        teardownDelaySeconds: float = 2.0,
    ):
        if not gameCommand:
            raise ValueError("gameCommand must not be empty")
        self.gameCommand = list(gameCommand)
        self.gameEnv = dict(gameEnv or {})
        self.controlCommand = list(controlCommand or [])
        self.botConfigPath = Path(botConfigPath) if botConfigPath else None
        self.botConfig = botConfig
        self.successRe = re.compile(successPattern)
        self.crashExitCode = crashExitCode
        self.timeoutSeconds = timeoutSeconds
        self.launchDelaySeconds = launchDelaySeconds
        self.teardownDelaySeconds = teardownDelaySeconds

    @classmethod
    def fromSettings(cls, settings: HarnessSettings, *, withControl: bool = True) -> GameHarness:
        """`withControl=False` runs the game alone (no control command, bot config untouched)."""
        return cls(
            settings.gameCommand,
            gameEnv=settings.gameEnv,
            controlCommand=settings.controlCommand if withControl else None,
            botConfigPath=settings.botConfigPath if withControl else None,
            botConfig=settings.botConfig if withControl else None,
            successPattern=settings.successPattern,
            crashExitCode=settings.crashExitCode,
            timeoutSeconds=settings.timeoutSeconds,
            launchDelaySeconds=settings.launchDelaySeconds,
            teardownDelaySeconds=settings.teardownDelaySeconds,
        )

    def runTrial(self, roundNumber: int = 1) -> TrialReport:
        """Run one trial to completion. Never raises for game-side failures."""
        logger.info("Starting crash test round %d...", roundNumber, extra={"round": roundNumber})
        backup = self._installBotConfig()
        try:
            report = asyncio.run(self._runTrialAsync(roundNumber))
        except (OSError, CommandError) as err:
            logger.warning("Round %d inconclusive: %s", roundNumber, err)
            report = TrialReport(roundNumber, "error", detail=str(err))
        finally:
            self._restoreBotConfig(backup)

        if report.crashed:
            logger.info("Round %d: CRASH DETECTED (exit code %s)", roundNumber, report.exitCode, extra={"round": roundNumber})
        else:
            logger.info("Round %d: completed without crashes (%s)", roundNumber, report.outcome, extra={"round": roundNumber})
        return report

    # ----- bot config -----

    def _installBotConfig(self) -> bytes | None:
        if self.botConfigPath is None or self.botConfig is None:
            return None
        try:
            backup = self.botConfigPath.read_bytes()
        except FileNotFoundError:
            backup = None
        try:
            self.botConfigPath.write_text(self.botConfig, encoding="utf-8")
        except OSError as err:
            logger.warning("Failed to write bot config '%s': %s", self.botConfigPath, err)
        else:
            logger.debug("Updated bot config '%s' for crash testing", self.botConfigPath)
        return backup

    def _restoreBotConfig(self, backup: bytes | None) -> None:
        if self.botConfigPath is None or self.botConfig is None:
            return
        try:
            if backup is None:
                self.botConfigPath.unlink(missing_ok=True)
            else:
                self.botConfigPath.write_bytes(backup)
        except OSError as err:
            logger.warning("Failed to restore bot config '%s': %s", self.botConfigPath, err)
            return
        logger.debug("Restored bot config '%s'", self.botConfigPath)

    # ----- process handling -----

    async def _watchOutput(self, stream: asyncio.StreamReader | None) -> re.Match[str] | None:
        """Scan the stream until the success marker shows up or EOF."""
        if stream is None:
            return None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        tail = ""
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            text = decoder.decode(chunk, final=not chunk)
            for line in text.splitlines():
                if line.strip():
                    logger.debug("[game] %s", line.rstrip())
            tail += text
            match = self.successRe.search(tail)
            if match is not None:
                return match
            if not chunk:
                return None
            tail = tail[-OUTPUT_TAIL_CHARS:]

    def _successReport(self, roundNumber: int, match: re.Match[str]) -> TrialReport:
        fps: float | None = None
        groups = match.groupdict()
        raw = groups.get("fps") if groups else (match.group(1) if match.re.groups else None)
        if raw is not None:
            try:
                fps = float(raw)
            except ValueError:
                fps = None
        return TrialReport(roundNumber, "success", fps=fps, detail=match.group(0))

    async def _drainOutput(self, markerTask: asyncio.Future, deadline: float) -> re.Match[str] | None:
        """Marker match once the game has exited; descendants may still hold the pipe open."""
        if not markerTask.done():
            remaining = deadline - asyncio.get_running_loop().time()
            await asyncio.wait({markerTask}, timeout=min(OUTPUT_DRAIN_SECONDS, max(0.0, remaining)))
        return markerTask.result() if markerTask.done() else None

    async def _runTrialAsync(self, roundNumber: int) -> TrialReport:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeoutSeconds
        env = {**os.environ, **self.gameEnv}

        game = await asyncio.create_subprocess_exec(
            *self.gameCommand,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env,
            **newProcessGroupOptions(),
        )
        descendants: dict[int, psutil.Process] = {}
        control: asyncio.subprocess.Process | None = None
        markerTask = asyncio.ensure_future(self._watchOutput(game.stdout))
        # wait() also waits for the pipe to close, so exits are read from returncode
        gameTask = asyncio.ensure_future(game.wait())
        controlTask: asyncio.Future[int] | None = None
        tasks: list[asyncio.Future] = [markerTask, gameTask]

        try:
            if self.controlCommand:
                delay = min(self.launchDelaySeconds, max(0.0, deadline - loop.time()))
                logger.info("Waiting %.1fs for the game to launch...", delay)
                await asyncio.wait({markerTask}, timeout=delay)
                if markerTask.done() and markerTask.result() is not None:
                    return self._successReport(roundNumber, markerTask.result())
                control = await asyncio.create_subprocess_exec(*self.controlCommand, env=env, **newProcessGroupOptions())
                controlTask = asyncio.ensure_future(control.wait())
                tasks.append(controlTask)

            while True:
                if markerTask.done():
                    match = markerTask.result()
                    if match is not None:
                        return self._successReport(roundNumber, match)
                if controlTask is not None and controlTask.done():
                    code = controlTask.result()
                    if code == self.crashExitCode:
                        return TrialReport(roundNumber, "crash", exitCode=code)
                    return TrialReport(roundNumber, "completed", exitCode=code)
                gameCode = game.returncode
                if gameCode is not None and (gameCode == self.crashExitCode or controlTask is None):
                    match = await self._drainOutput(markerTask, deadline)
                    if match is not None:
                        return self._successReport(roundNumber, match)
                    if gameCode == self.crashExitCode:
                        return TrialReport(roundNumber, "crash", exitCode=gameCode)
                    return TrialReport(roundNumber, "exited", exitCode=gameCode)
                self._trackDescendants(game, descendants)

                pending = {task for task in tasks if not task.done()}
                remaining = deadline - loop.time()
                if not pending or remaining <= 0:
                    break
                await asyncio.wait(
                    pending,
                    timeout=min(remaining, DESCENDANT_POLL_SECONDS),
                    return_when=asyncio.FIRST_COMPLETED,
                )

            logger.info("Timeout reached after %.0fs, terminating", self.timeoutSeconds)
            return TrialReport(roundNumber, "timeout", exitCode=game.returncode)
        finally:
            if control is not None:
                await self._teardown(control)
                if self.teardownDelaySeconds > 0:
                    await asyncio.sleep(self.teardownDelaySeconds)
            await self._teardown(game, descendants)
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    @staticmethod
    def _trackDescendants(proc: asyncio.subprocess.Process, seen: dict[int, psutil.Process]) -> None:
        """Remember the running children of `proc`; once it exits they can no longer be listed."""
        if proc.returncode is not None:
            return
        try:
            children = psutil.Process(proc.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            return
        for child in children:
            seen.setdefault(child.pid, child)

    async def _teardown(
        self,
        proc: asyncio.subprocess.Process,
        descendants: dict[int, psutil.Process] | None = None,
    ) -> None:
        if proc.returncode is None:
            killProcessTree(proc.pid)
        killProcessGroup(proc.pid)
        if descendants:
            killProcesses(child for child in descendants.values() if child.is_running())
        try:
            await asyncio.wait_for(proc.wait(), timeout=REAP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Process %d did not exit after kill", proc.pid)
