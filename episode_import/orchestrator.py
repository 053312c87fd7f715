#!/usr/bin/env python3
"""
Supervise one TMDB-Import child process

TMDB-Import has no batch mode: when an episode already exists it prints a
w/y/n prompt and blocks on stdin. This module watches stdout, answers those
prompts with the configured character, and enforces a wall-clock budget.

State machine:
    STARTING -> RUNNING -> COMPLETED | FAILED | TIMED_OUT | KILLED

Every terminal state goes through one CompletionLatch. Process exit, process
error, timeout and abort all race to resolve it; the first one wins and the
rest are ignored. On timeout/abort the child gets SIGTERM, then SIGKILL if it
is still alive after the grace window.

Never raises past run(): every failure is returned as a ProcessResult.
"""

import asyncio
import codecs
import logging
import os
import signal
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from episode_import.constants import (
    CONFLICT_MARKERS, FATAL_STDERR_MARKERS, IMPORT_TIMEOUT_SECONDS, KILL_GRACE_SECONDS,
)

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 4096


class ProcessState(Enum):
    STARTING = 'starting'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    KILLED = 'killed'


TERMINAL_STATES = {
    ProcessState.COMPLETED, ProcessState.FAILED,
    ProcessState.TIMED_OUT, ProcessState.KILLED,
}


@dataclass
class ProcessResult:
    state: ProcessState
    stdout: str = ''
    stderr: str = ''
    exit_code: Optional[int] = None
    signal_name: Optional[str] = None
    error: Optional[str] = None
    spawn_failed: bool = False
    prompts_answered: int = 0


class CompletionLatch:
    """Single-fire result holder: only the first resolve() is kept"""

    def __init__(self):
        self._result: Optional[ProcessResult] = None
        self._event = asyncio.Event()

    @property
    def resolved(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Optional[ProcessResult]:
        return self._result

    def resolve(self, result: ProcessResult) -> bool:
        # No await between check and set: atomic on the event loop
        if self._result is not None:
            return False
        self._result = result
        self._event.set()
        return True

    async def wait(self) -> ProcessResult:
        await self._event.wait()
        return self._result


def contains_conflict_prompt(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in CONFLICT_MARKERS)


class ProcessSession:
    """One run of the external import tool"""

    def __init__(
        self,
        command: Sequence[str],
        target_reference: str,
        working_dir: Path,
        conflict_response: str = 'w',
        timeout: float = IMPORT_TIMEOUT_SECONDS,
        kill_grace: float = KILL_GRACE_SECONDS,
        env: Optional[Dict[str, str]] = None,
    ):
        self.command = list(command)
        self.target_reference = target_reference
        self.working_dir = Path(working_dir)
        self.conflict_response = conflict_response
        self.timeout = timeout
        self.kill_grace = kill_grace
        self.env = env

        self.state = ProcessState.STARTING
        self.latch = CompletionLatch()
        self.process: Optional[asyncio.subprocess.Process] = None
        self.prompts_answered = 0
        self.signals_sent: List[str] = []

        self._stdout: List[str] = []
        self._stderr: List[str] = []
        self._stdout_decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._stderr_decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._escalation: Optional[asyncio.Task] = None

    @property
    def argv(self) -> List[str]:
        return self.command + [self.target_reference]

    @property
    def stdout(self) -> str:
        return ''.join(self._stdout)

    @property
    def stderr(self) -> str:
        return ''.join(self._stderr)

    def _snapshot(self, state: ProcessState, **kwargs) -> ProcessResult:
        return ProcessResult(
            state=state,
            stdout=self.stdout,
            stderr=self.stderr,
            prompts_answered=self.prompts_answered,
            **kwargs
        )

    def _resolve(self, result: ProcessResult) -> bool:
        if not self.latch.resolve(result):
            logger.debug(f"Ignored late {result.state.value} (already {self.state.value})")
            return False
        self.state = result.state
        logger.info(f"TMDB-Import {result.state.value}: {self.target_reference}")
        return True

    # === Resolution triggers ===

    def _handle_exit(self, returncode: int) -> bool:
        if returncode == 0:
            return self._resolve(self._snapshot(ProcessState.COMPLETED, exit_code=0))

        signal_name = None
        if returncode < 0:
            try:
                signal_name = signal.Signals(-returncode).name
            except ValueError:
                signal_name = f"signal {-returncode}"
            error = f"terminated by {signal_name}"
        else:
            error = f"exited with code {returncode}"

        return self._resolve(self._snapshot(
            ProcessState.FAILED, exit_code=returncode, signal_name=signal_name, error=error,
        ))

    def _handle_error(self, exc: BaseException) -> bool:
        return self._resolve(self._snapshot(ProcessState.FAILED, error=f"process error: {exc}"))

    def _handle_timeout(self) -> bool:
        claimed = self._resolve(self._snapshot(
            ProcessState.TIMED_OUT, error=f"timed out after {self.timeout:g}s",
        ))
        if claimed:
            self._start_escalation()
        return claimed

    def abort(self, reason: str = 'aborted by caller') -> bool:
        """External cancel: same terminate-then-kill escalation as a timeout"""
        claimed = self._resolve(self._snapshot(ProcessState.KILLED, error=reason))
        if claimed:
            self._start_escalation()
        return claimed

    # === Escalation ===

    def _start_escalation(self):
        if self.process is None or self.process.returncode is not None:
            return
        self._escalation = asyncio.get_running_loop().create_task(self._terminate_then_kill())

    async def _terminate_then_kill(self):
        try:
            self.process.terminate()
            self.signals_sent.append('SIGTERM')
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(self.process.wait(), timeout=self.kill_grace)
            return
        except asyncio.TimeoutError:
            logger.warning(f"TMDB-Import ignored SIGTERM for {self.kill_grace:g}s; sending SIGKILL")

        try:
            self.process.kill()
            self.signals_sent.append('SIGKILL')
        except ProcessLookupError:
            return
        await self.process.wait()

    # === Stream pumps ===

    async def _answer_prompt(self):
        self.prompts_answered += 1
        logger.info(f"Conflict prompt detected; answering {self.conflict_response!r}")
        try:
            self.process.stdin.write(f"{self.conflict_response}\n".encode('utf-8'))
            await self.process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(f"Could not answer prompt, stdin closed: {e}")

    async def _pump_stdout(self):
        while True:
            chunk = await self.process.stdout.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            text = self._stdout_decoder.decode(chunk)
            self._stdout.append(text)
            logger.debug(f"[stdout] {text.strip()}")
            if not self.latch.resolved and contains_conflict_prompt(text):
                await self._answer_prompt()
        self._stdout.append(self._stdout_decoder.decode(b'', final=True))

    async def _pump_stderr(self):
        while True:
            chunk = await self.process.stderr.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            text = self._stderr_decoder.decode(chunk)
            self._stderr.append(text)
            lowered = text.lower()
            if any(marker in lowered for marker in FATAL_STDERR_MARKERS):
                logger.warning(f"[stderr] {text.strip()}")
            else:
                logger.debug(f"[stderr] {text.strip()}")
        self._stderr.append(self._stderr_decoder.decode(b'', final=True))

    async def _watch_exit(self, pumps: List[asyncio.Task]):
        try:
            returncode = await self.process.wait()
            # Exit counts once both pipes are drained
            await asyncio.gather(*pumps)
        except Exception as e:
            logger.error(f"TMDB-Import process error: {e}")
            self._handle_error(e)
            return
        self._handle_exit(returncode)

    async def _watch_timeout(self):
        await asyncio.sleep(self.timeout)
        if not self.latch.resolved:
            logger.warning(f"TMDB-Import timed out after {self.timeout:g}s")
            self._handle_timeout()

    # === Entry point ===

    async def _spawn(self) -> bool:
        env = dict(os.environ if self.env is None else self.env)
        env['PYTHONUNBUFFERED'] = '1'
        env.setdefault('PYTHONIOENCODING', 'utf-8')

        logger.info(f"Starting TMDB-Import in {self.working_dir}: {' '.join(self.argv)}")
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.argv,
                cwd=str(self.working_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.error(f"Could not start TMDB-Import: {e}")
            self._resolve(self._snapshot(ProcessState.FAILED, error=f"spawn failed: {e}", spawn_failed=True))
            return False

        if not self.process.pid:
            self._resolve(self._snapshot(ProcessState.FAILED, error='spawn failed: no process id', spawn_failed=True))
            return False

        if self.state in TERMINAL_STATES:
            # abort() landed while the process was starting
            logger.info(f"TMDB-Import {self.state.value} during startup; stopping pid {self.process.pid}")
            self._start_escalation()
            return False

        self.state = ProcessState.RUNNING
        return True

    async def run(self) -> ProcessResult:
        if not await self._spawn():
            if self._escalation is not None:
                await self._escalation
            return self.latch.result

        pumps = [
            asyncio.create_task(self._pump_stdout()),
            asyncio.create_task(self._pump_stderr()),
        ]
        exit_watcher = asyncio.create_task(self._watch_exit(pumps))
        timer = asyncio.create_task(self._watch_timeout())

        result = await self.latch.wait()

        timer.cancel()
        await asyncio.gather(timer, return_exceptions=True)
        if self._escalation is not None:
            await self._escalation

        pending = [task for task in pumps + [exit_watcher] if not task.done()]
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=self.kill_grace)
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)

        return result


async def run_import_tool(
    command: Sequence[str],
    target_reference: str,
    working_dir: Path,
    conflict_response: str = 'w',
    timeout: float = IMPORT_TIMEOUT_SECONDS,
    kill_grace: float = KILL_GRACE_SECONDS,
) -> ProcessResult:
    """Run the import tool once against target_reference and wait for a terminal state"""
    session = ProcessSession(
        command, target_reference, working_dir,
        conflict_response=conflict_response, timeout=timeout, kill_grace=kill_grace,
    )
    return await session.run()
