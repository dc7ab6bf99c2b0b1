"""Challenge publication handlers.

autocert does not solve challenges itself: a handler publishes the
DNS TXT record or HTTP token the ACME server asks for and removes it
afterwards.  Handlers are built from the ``challenge_handler_config``
mapping by a named factory.

Built-in factories:

- ``callback_dns``  -- wrap shell scripts for DNS-01 record management
- ``file_http``     -- serve HTTP-01 tokens from a webroot directory
- ``callback_http`` -- wrap shell scripts for HTTP-01 token management

Custom factories can be loaded via the ``ext:`` prefix
(e.g. ``ext:mypackage.handlers.MyFactory``).
"""

from __future__ import annotations

import abc
import importlib
import logging
import subprocess
from pathlib import Path
from typing import Any

from autocert.authority.base import AuthorityError
from autocert.core.types import ChallengeType

log = logging.getLogger(__name__)


def _run_script(argv: list[str], timeout: float) -> None:
    try:
        subprocess.run(  # noqa: S603
            argv,
            check=True,
            timeout=timeout,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        msg = (
            f"challenge script {argv[0]} exited with {exc.returncode}: "
            f"{(exc.stderr or '').strip()}"
        )
        raise AuthorityError(msg) from exc
    except subprocess.TimeoutExpired as exc:
        msg = f"challenge script {argv[0]} timed out after {timeout}s"
        raise AuthorityError(msg, retryable=True) from exc
    except OSError as exc:
        msg = f"cannot run challenge script {argv[0]}: {exc}"
        raise AuthorityError(msg) from exc


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class ChallengeHandler(abc.ABC):
    """Publish and withdraw the response to one challenge type.

    For DNS-01, ``name`` is the TXT record name and ``value`` its
    content.  For HTTP-01, ``name`` is the token and ``value`` the key
    authorization.
    """

    challenge_type: ChallengeType
    propagation_delay: float = 0

    @abc.abstractmethod
    def deploy(self, domain: str, name: str, value: str) -> None:
        """Publish the challenge response for *domain*."""

    @abc.abstractmethod
    def cleanup(self, domain: str, name: str) -> None:
        """Withdraw the challenge response for *domain*."""


class CallbackDnsHandler(ChallengeHandler):
    challenge_type = ChallengeType.DNS_01

    def __init__(
        self,
        create_script: str,
        delete_script: str,
        *,
        propagation_delay: float = 10,
        script_timeout: float = 60,
    ) -> None:
        self.create_script = create_script
        self.delete_script = delete_script
        self.propagation_delay = propagation_delay
        self.script_timeout = script_timeout

    def deploy(self, domain: str, name: str, value: str) -> None:
        log.info("DNS create: %s %s via %s", name, domain, self.create_script)
        _run_script([self.create_script, domain, name, value], self.script_timeout)

    def cleanup(self, domain: str, name: str) -> None:
        log.info("DNS delete: %s %s via %s", name, domain, self.delete_script)
        _run_script([self.delete_script, domain, name], self.script_timeout)


class FileHttpHandler(ChallengeHandler):
    """Write HTTP-01 tokens below ``<webroot>/.well-known/acme-challenge/``."""

    challenge_type = ChallengeType.HTTP_01

    def __init__(self, webroot: str | Path) -> None:
        self.directory = Path(webroot) / ".well-known" / "acme-challenge"

    def deploy(self, domain: str, name: str, value: str) -> None:
        log.info("HTTP deploy: %s %s in %s", name, domain, self.directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            (self.directory / name).write_text(value, encoding="ascii")
        except OSError as exc:
            msg = f"cannot write challenge token {name}: {exc}"
            raise AuthorityError(msg) from exc

    def cleanup(self, domain: str, name: str) -> None:
        log.info("HTTP cleanup: %s %s in %s", name, domain, self.directory)
        try:
            (self.directory / name).unlink(missing_ok=True)
        except OSError as exc:
            msg = f"cannot remove challenge token {name}: {exc}"
            raise AuthorityError(msg) from exc


class CallbackHttpHandler(ChallengeHandler):
    challenge_type = ChallengeType.HTTP_01

    def __init__(
        self,
        deploy_script: str,
        cleanup_script: str,
        *,
        script_timeout: float = 60,
    ) -> None:
        self.deploy_script = deploy_script
        self.cleanup_script = cleanup_script
        self.script_timeout = script_timeout

    def deploy(self, domain: str, name: str, value: str) -> None:
        log.info("HTTP deploy: %s %s via %s", name, domain, self.deploy_script)
        _run_script([self.deploy_script, domain, name, value], self.script_timeout)

    def cleanup(self, domain: str, name: str) -> None:
        log.info("HTTP cleanup: %s %s via %s", name, domain, self.cleanup_script)
        _run_script([self.cleanup_script, domain, name], self.script_timeout)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class ChallengeHandlerFactory(abc.ABC):
    """Create a :class:`ChallengeHandler` from JSON config."""

    @abc.abstractmethod
    def create(self, config: dict[str, Any]) -> ChallengeHandler:
        """Build and return a ChallengeHandler instance.

        Parameters
        ----------
        config:
            The ``challenge_handler_config`` dict from settings.

        """


class CallbackDnsFactory(ChallengeHandlerFactory):
    """Factory for :class:`CallbackDnsHandler`.

    Required config keys:

    - ``create_script``: path to script called as
      ``script <domain> <record_name> <record_value>``
    - ``delete_script``: path to script called as
      ``script <domain> <record_name>``

    Optional: ``propagation_delay`` (default 10), ``script_timeout``
    (default 60).
    """

    def create(self, config: dict[str, Any]) -> ChallengeHandler:
        create_script = config.get("create_script")
        delete_script = config.get("delete_script")
        if not create_script:
            msg = "callback_dns handler requires 'create_script' in config"
            raise AuthorityError(msg)
        if not delete_script:
            msg = "callback_dns handler requires 'delete_script' in config"
            raise AuthorityError(msg)
        return CallbackDnsHandler(
            create_script,
            delete_script,
            propagation_delay=config.get("propagation_delay", 10),
            script_timeout=config.get("script_timeout", 60),
        )


class FileHttpFactory(ChallengeHandlerFactory):
    """Factory for :class:`FileHttpHandler`; requires ``webroot``."""

    def create(self, config: dict[str, Any]) -> ChallengeHandler:
        webroot = config.get("webroot")
        if not webroot:
            msg = "file_http handler requires 'webroot' in config"
            raise AuthorityError(msg)
        return FileHttpHandler(webroot)


class CallbackHttpFactory(ChallengeHandlerFactory):
    """Factory for :class:`CallbackHttpHandler`.

    Required config keys:

    - ``deploy_script``: path to script called as
      ``script <domain> <token> <key_authorization>``
    - ``cleanup_script``: path to script called as
      ``script <domain> <token>``

    """

    def create(self, config: dict[str, Any]) -> ChallengeHandler:
        deploy_script = config.get("deploy_script")
        cleanup_script = config.get("cleanup_script")
        if not deploy_script:
            msg = "callback_http handler requires 'deploy_script' in config"
            raise AuthorityError(msg)
        if not cleanup_script:
            msg = "callback_http handler requires 'cleanup_script' in config"
            raise AuthorityError(msg)
        return CallbackHttpHandler(
            deploy_script,
            cleanup_script,
            script_timeout=config.get("script_timeout", 60),
        )


_BUILTIN_FACTORIES: dict[str, ChallengeHandlerFactory] = {
    "callback_dns": CallbackDnsFactory(),
    "file_http": FileHttpFactory(),
    "callback_http": CallbackHttpFactory(),
}


def load_challenge_handler(
    handler_name: str,
    config: dict[str, Any],
) -> ChallengeHandler:
    """Load and create a challenge handler.

    Parameters
    ----------
    handler_name:
        Built-in name (``callback_dns``, ``file_http``,
        ``callback_http``) or ``ext:fully.qualified.FactoryClass``
        for custom factories.
    config:
        The ``challenge_handler_config`` dict from settings.

    Raises
    ------
    AuthorityError
        If the handler cannot be loaded or created.

    """
    if handler_name in _BUILTIN_FACTORIES:
        return _BUILTIN_FACTORIES[handler_name].create(config)

    if handler_name.startswith("ext:"):
        return _load_external_handler(handler_name[4:], config)

    msg = (
        f"Unknown challenge handler '{handler_name}'; "
        f"built-in options: {sorted(_BUILTIN_FACTORIES)}. "
        "Use 'ext:mypackage.module.FactoryClass' for custom handlers."
    )
    raise AuthorityError(msg)


def _load_external_handler(
    fqn: str,
    config: dict[str, Any],
) -> ChallengeHandler:
    module_path, _, cls_name = fqn.rpartition(".")
    if not module_path:
        msg = (
            f"Invalid external handler factory '{fqn}': must be "
            "fully qualified (e.g. 'mypackage.module.FactoryClass')"
        )
        raise AuthorityError(msg)
    try:
        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load external handler factory '{fqn}': {exc}"
        raise AuthorityError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, ChallengeHandlerFactory)):
        msg = f"External handler factory '{fqn}' must be a subclass of ChallengeHandlerFactory"
        raise AuthorityError(msg)

    return cls().create(config)
