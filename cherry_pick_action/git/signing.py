"""GPG commit signing for shell workspaces.

The private key is imported into a keyring private to the workspace
(``<workspace>/.gnupg``) so nothing leaks into the runner's home directory.
"""

import asyncio
import base64
import binascii
import os
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

from cherry_pick_action.exceptions import GitOperationError
from cherry_pick_action.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

GNUPG_DIRNAME = ".gnupg"


def decode_signing_key(key: str) -> bytes:
    """Return key material as bytes.

    Armored keys are used as-is. Anything else is tried as base64 and falls
    back to the raw text when it does not decode.
    """
    key = key.strip()
    if key.startswith("-----BEGIN"):
        return key.encode("utf-8")
    try:
        return base64.b64decode("".join(key.split()), validate=True)
    except (binascii.Error, ValueError):
        return key.encode("utf-8")


def extract_key_id(output: str) -> str:
    """Find the long key id in ``gpg --list-secret-keys --keyid-format=long`` output.

    Looks for ``sec``/``ssb`` lines carrying an ``algo/KEYID`` field.
    """
    for line in output.splitlines():
        if "sec" not in line and "ssb" not in line:
            continue
        for part in line.split():
            if "/" not in part:
                continue
            segments = part.split("/")
            if len(segments) == 2 and len(segments[1]) >= 8:
                return segments[1]
    return ""


async def configure_gpg_signing(
    workdir: Path,
    signing_key: str,
    passphrase: str,
    git_config: Callable[[str, str], Awaitable[None]],
) -> Path | None:
    """Import ``signing_key`` and configure the clone to sign commits.

    Args:
        workdir: Workspace directory
        signing_key: Armored or base64-encoded private key
        passphrase: Passphrase for the key, may be empty
        git_config: Coroutine setting a git config key in the workspace

    Returns:
        The GnuPG home to export as ``GNUPGHOME`` for later git commands, or
        None when no key was given.

    Raises:
        GitOperationError: If gpg fails or no key id can be found
    """
    if not signing_key.strip():
        return None

    gpg_home = workdir / GNUPG_DIRNAME
    gpg_home.mkdir(mode=0o700, parents=True, exist_ok=True)

    env = dict(os.environ)
    if passphrase:
        env["GPG_PASSPHRASE"] = passphrase

    key_file = gpg_home / "signing.key"
    await asyncio.to_thread(_write_private, key_file, decode_signing_key(signing_key))
    try:
        import_args = ["--homedir", str(gpg_home), "--batch", "--import", str(key_file)]
        output, code = await run_command("gpg", *import_args, env=env)
        if code != 0:
            raise GitOperationError("gpg import key failed", output=output, returncode=code)
    finally:
        try:
            key_file.unlink()
        except OSError as e:
            log.warning("signing_key_cleanup_failed", path=str(key_file), error=str(e))

    output, code = await run_command(
        "gpg", "--homedir", str(gpg_home), "--list-secret-keys", "--keyid-format=long", env=env
    )
    if code != 0:
        raise GitOperationError("gpg list keys failed", output=output, returncode=code)

    key_id = extract_key_id(output)
    if not key_id:
        raise GitOperationError("could not extract key ID from gpg output")

    await git_config("user.signingkey", key_id)
    await git_config("commit.gpgsign", "true")
    await git_config("gpg.program", "gpg")

    log.info("gpg_signing_configured", key_id=key_id)
    return gpg_home


def _write_private(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
