"""
App install prompts.

The browser hands over a deferred install prompt at some point; InstallPrompt
wraps that behind two calls so nothing else depends on the platform event.
When no prompt was captured the caller falls back to manual_instructions().
"""

from typing import Callable

from imagecraft.i18n import LanguageContext

ACCEPTED = "accepted"
DISMISSED = "dismissed"
UNAVAILABLE = "unavailable"


class InstallPrompt:

    def __init__(self):
        self._deferred: Callable[[], str] | None = None
        self._callbacks: list[Callable[[], None]] = []
        self.installed = False

    def on_installable(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` once the platform offers an install prompt."""
        self._callbacks.append(callback)
        if self._deferred is not None:
            callback()

    def capture(self, prompt: Callable[[], str]) -> None:
        """Platform side: store the deferred prompt and notify listeners."""
        if self.installed:
            return
        self._deferred = prompt
        for callback in list(self._callbacks):
            callback()

    def mark_installed(self) -> None:
        self.installed = True
        self._deferred = None

    def prompt_install(self) -> str:
        """Show the captured prompt once. Returns accepted, dismissed or unavailable."""
        if self.installed or self._deferred is None:
            return UNAVAILABLE
        prompt, self._deferred = self._deferred, None
        outcome = prompt()
        if outcome == ACCEPTED:
            self.installed = True
            return ACCEPTED
        return DISMISSED


def manual_instructions(user_agent: str, lang: LanguageContext) -> str:
    ua = (user_agent or "").lower()
    if "chrome" in ua and "edg" not in ua:
        return lang.t("pwa.chrome")
    if "safari" in ua and "chrome" not in ua:
        return lang.t("pwa.safari")
    if "firefox" in ua:
        return lang.t("pwa.firefox")
    return lang.t("pwa.other")
