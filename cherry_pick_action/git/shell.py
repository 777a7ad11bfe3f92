"""
Workspace executor backed by the system ``git`` binary.

Each workspace is a fresh partial clone (``--filter=blob:none``) in a
temporary directory. Network commands (clone, fetch, push, pull, remote) are
bounded by a per-attempt timeout and retried with exponential backoff; local
commands run once. A command that times out or is cancelled has its whole
process group killed and is never retried.

Example:
    >>> executor = ShellExecutor(token="ghs_xxx", user_name="Bot", user_email="bot@example.com")
    >>> async with await executor.prepare("rancher", "dashboard") as ws:
    ...     await ws.checkout_branch("release/v2.9")
    ...     await ws.create_branch_from("cherry-pick/release/v2.9/pr-7", "release/v2.9")
"""

import asyncio
import os
import shutil
import tempfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import structlog

from cherry_pick_action.exceptions import CherryPickConflictError, GitOperationError
from cherry_pick_action.git.executor import Executor, Workspace
from cherry_pick_action.git.signing import configure_gpg_signing
from cherry_pick_action.utils.async_subprocess import run_command
from cherry_pick_action.utils.retry import call_with_retry

log = structlog.get_logger(__name__)

NETWORK_COMMANDS = frozenset({"clone", "fetch", "push", "pull", "remote"})

DEFAULT_NETWORK_RETRIES = 2
DEFAULT_NETWORK_RETRY_DELAY = 1.0
DEFAULT_NETWORK_TIMEOUT = 120.0

_REDACTED = "***"


def primary_git_command(args: Sequence[str]) -> str:
    """Return the git subcommand in ``args``, skipping global options.

    ``-C``, ``--git-dir`` and ``-c`` consume the following argument.
    """
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            return args[i + 1] if i + 1 < len(args) else ""
        if arg.startswith("-"):
            if arg in ("-C", "--git-dir", "-c"):
                i += 1
            i += 1
            continue
        return arg
    return ""


def is_network_command(command: str) -> bool:
    """Check whether a git subcommand talks to a remote."""
    return command in NETWORK_COMMANDS


def is_missing_remote_branch(exc: BaseException) -> bool:
    """Check whether a failed fetch means the remote branch does not exist."""
    if not isinstance(exc, GitOperationError):
        return False
    out = exc.output
    return (
        "couldn't find remote ref" in out or "invalid refspec" in out or "unknown revision" in out
    )


def should_retry_without_filter(exc: BaseException) -> bool:
    """Check whether a clone failed because the server rejected partial clone."""
    if not isinstance(exc, GitOperationError):
        return False
    output = exc.output.lower()
    return "filter" in output or "partial clone" in output


def github_remote_url(owner: str, repo: str, token: str = "", host: str = "github.com") -> str:
    """HTTPS remote URL, embedding ``token`` as an x-access-token credential."""
    if token:
        return f"https://x-access-token:{token}@{host}/{owner}/{repo}.git"
    return f"https://{host}/{owner}/{repo}.git"


class ShellExecutor(Executor):
    """Prepares workspaces by shelling out to git.

    Args:
        git: Git binary to execute
        base_dir: Parent directory for workspaces (system temp dir when None)
        remote_url: Builds the remote URL for ``(owner, repo)``. Defaults to
            github.com over HTTPS with ``token`` embedded.
        token: Access token used in the default remote URL. Redacted from
            errors and logs.
        user_name: Commit author name configured in each clone
        user_email: Commit author email configured in each clone
        signing_key: GPG private key; enables commit signing when set
        signing_passphrase: Passphrase for ``signing_key``
        remote_name: Name of the remote created by clone
        network_retries: Extra attempts for network commands (0 disables)
        network_retry_delay: Delay before the first retry, doubled after each
        network_timeout: Per-attempt timeout for network commands without an
            explicit timeout
    """

    def __init__(
        self,
        git: str = "git",
        base_dir: Path | str | None = None,
        remote_url: Callable[[str, str], str] | None = None,
        token: str = "",
        user_name: str = "",
        user_email: str = "",
        signing_key: str = "",
        signing_passphrase: str = "",
        remote_name: str = "origin",
        network_retries: int = DEFAULT_NETWORK_RETRIES,
        network_retry_delay: float = DEFAULT_NETWORK_RETRY_DELAY,
        network_timeout: float = DEFAULT_NETWORK_TIMEOUT,
    ) -> None:
        self.git = git or "git"
        self.base_dir = Path(base_dir) if base_dir else None
        self.remote_url = remote_url
        self.token = token
        self.user_name = user_name
        self.user_email = user_email
        self.signing_key = signing_key
        self.signing_passphrase = signing_passphrase
        self.remote_name = remote_name or "origin"
        self.network_retries = max(0, network_retries)
        self.network_retry_delay = network_retry_delay if network_retry_delay > 0 else 0.0
        self.network_timeout = network_timeout if network_timeout > 0 else DEFAULT_NETWORK_TIMEOUT

    def _remote_url(self, owner: str, repo: str) -> str:
        if self.remote_url is not None:
            return self.remote_url(owner, repo)
        return github_remote_url(owner, repo, self.token)

    def _redact(self, text: str) -> str:
        if self.token and self.token in text:
            return text.replace(self.token, _REDACTED)
        return text

    def _new_workspace_dir(self, repo: str) -> Path:
        base = self.base_dir or Path(tempfile.gettempdir())
        base.mkdir(parents=True, exist_ok=True)
        prefix = f"cherry-pick-{repo.replace(' ', '_')}-"
        return Path(tempfile.mkdtemp(prefix=prefix, dir=base))

    async def prepare(self, owner: str, repo: str) -> Workspace:
        if not owner or not repo:
            raise ValueError("owner and repo are required")

        remote = self._remote_url(owner, repo)
        if not remote:
            raise ValueError("remote url could not be determined")

        workdir = await asyncio.to_thread(self._new_workspace_dir, repo)
        try:
            try:
                await self.run_git("clone", "--filter=blob:none", "--no-checkout", remote, str(workdir))
            except GitOperationError as e:
                if not should_retry_without_filter(e):
                    raise
                log.info("partial_clone_unsupported", owner=owner, repo=repo)
                await asyncio.to_thread(shutil.rmtree, workdir, True)
                workdir = await asyncio.to_thread(self._new_workspace_dir, repo)
                await self.run_git("clone", "--no-checkout", remote, str(workdir))

            if self.user_name:
                await self.run_git("-C", str(workdir), "config", "user.name", self.user_name)
            if self.user_email:
                await self.run_git("-C", str(workdir), "config", "user.email", self.user_email)

            env: dict[str, str] = {}
            if self.signing_key:

                async def git_config(key: str, value: str) -> None:
                    await self.run_git("-C", str(workdir), "config", key, value)

                gpg_home = await configure_gpg_signing(
                    workdir, self.signing_key, self.signing_passphrase, git_config
                )
                if gpg_home is not None:
                    env["GNUPGHOME"] = str(gpg_home)
        except BaseException:
            await asyncio.to_thread(shutil.rmtree, workdir, True)
            raise

        log.info("workspace_prepared", owner=owner, repo=repo, path=str(workdir))
        return ShellWorkspace(self, workdir, self.remote_name, env)

    async def run_git(
        self,
        *args: str,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> str:
        """Run git with retry and timeout policy applied.

        Args:
            *args: Arguments passed to the git binary
            timeout: Per-attempt timeout. Network commands fall back to
                ``network_timeout``; local commands default to no timeout.
            env: Extra environment variables for the child

        Returns:
            Combined stdout and stderr output

        Raises:
            GitOperationError: If git exits non-zero on the last attempt
            TimeoutError: If an attempt exceeds its timeout
        """
        network = is_network_command(primary_git_command(args))
        if network and timeout is None:
            timeout = self.network_timeout

        return await call_with_retry(
            lambda: self._run_git_once(args, timeout, env),
            max_attempts=1 + (self.network_retries if network else 0),
            initial_delay=self.network_retry_delay,
            backoff_factor=2.0,
            exceptions=(GitOperationError,),
            name=f"git {primary_git_command(args)}",
        )

    async def _run_git_once(
        self,
        args: Sequence[str],
        timeout: float | None,
        extra_env: Mapping[str, str] | None,
    ) -> str:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if extra_env:
            env.update(extra_env)

        shown = [self._redact(a) for a in args]
        log.debug("git_command", args=shown, timeout=timeout)

        try:
            output, code = await run_command(self.git, *args, timeout=timeout, env=env)
        except TimeoutError:
            log.warning("git_command_timeout", args=shown, timeout=timeout)
            raise

        if code != 0:
            raise GitOperationError(
                f"exit status {code}",
                args=shown,
                output=self._redact(output),
                returncode=code,
            )
        return output


class ShellWorkspace(Workspace):
    """A temporary clone operated on through :class:`ShellExecutor`."""

    def __init__(
        self,
        executor: ShellExecutor,
        path: Path,
        remote_name: str = "origin",
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.executor = executor
        self.path = path
        self.remote_name = remote_name
        self.env = dict(env or {})

    async def _exec(self, *args: str) -> str:
        return await self.executor.run_git("-C", str(self.path), *args, env=self.env)

    async def checkout_branch(self, branch: str) -> None:
        ref = f"{self.remote_name}/{branch}"
        fetch_error: GitOperationError | None = None
        try:
            await self._exec("fetch", self.remote_name, branch)
        except GitOperationError as e:
            if not is_missing_remote_branch(e):
                raise
            fetch_error = e

        attempts: list[tuple[str, ...]] = []
        if fetch_error is None:
            attempts.append(("checkout", "-B", branch, ref))
        attempts.append(("checkout", branch))
        if fetch_error is None:
            attempts.append(("checkout", "-b", branch, ref))

        last_error: GitOperationError | None = fetch_error
        for attempt in attempts:
            try:
                await self._exec(*attempt)
                return
            except GitOperationError as e:
                log.debug("checkout_attempt_failed", branch=branch, args=list(attempt))
                last_error = e

        raise GitOperationError(
            f"git checkout {branch} failed",
            args=last_error.args_list if last_error else None,
            output=last_error.output if last_error else "",
            returncode=last_error.returncode if last_error else None,
        ) from last_error

    async def create_branch_from(self, branch: str, from_branch: str) -> None:
        await self._exec("fetch", self.remote_name, from_branch)
        await self._exec("branch", "--force", branch, f"{self.remote_name}/{from_branch}")

    async def cherry_pick(self, commit: str) -> None:
        args = ["cherry-pick", commit]
        if await self._is_merge_commit(commit):
            args = ["cherry-pick", "-m", "1", commit]

        try:
            await self._exec(*args)
        except GitOperationError as e:
            raise CherryPickConflictError(
                e.message, args=e.args_list, output=e.output, returncode=e.returncode
            ) from e

    async def _is_merge_commit(self, commit: str) -> bool:
        output = await self._exec("rev-list", "--parents", "-n", "1", commit)
        # "<sha> <parent1> [<parent2> ...]"
        return len(output.split()) > 2

    async def abort_cherry_pick(self) -> None:
        try:
            await self._exec("cherry-pick", "--abort")
        except GitOperationError as e:
            if "no cherry-pick" in e.output.lower():
                return
            raise

    async def commit_allow_empty(self, message: str) -> None:
        message = message.strip() or "cherry-pick placeholder"
        await self._exec("commit", "--allow-empty", "-m", message)

    async def push_branch(self, branch: str) -> None:
        await self._exec("push", self.remote_name, "--force-with-lease", f"{branch}:{branch}")

    async def cleanup(self) -> None:
        try:
            await asyncio.to_thread(shutil.rmtree, self.path)
        except FileNotFoundError:
            return
        log.debug("workspace_removed", path=str(self.path))
