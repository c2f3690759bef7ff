from __future__ import annotations

import math
import platform
import re
import shutil
import subprocess
from typing import List, Optional

from domain.models import OutcomeKind, ProbeOptions, ProbeOutcome
from domain.ports import Prober, ProbeError

DEFAULT_PING_BIN = shutil.which("ping") or "ping"

# -----------------------------
# parsing da saída do ping do sistema
# -----------------------------
_REPLY_RES = [
    # linux / macOS: "40 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=10.3 ms"
    re.compile(
        r"bytes from (?P<addr>\S+?):\s.*?ttl=(?P<ttl>\d+).*?time[=<]\s*(?P<time>[\d.]+)\s*ms",
        re.IGNORECASE,
    ),
    # windows: "Reply from 8.8.8.8: bytes=32 time=10ms TTL=117" / "Reply from ::1: time<1ms"
    re.compile(
        r"Reply from (?P<addr>\S+?):\s+(?:bytes=\d+\s+)?time[=<]\s*(?P<time>[\d.]+)\s*ms(?:\s+TTL=(?P<ttl>\d+))?",
        re.IGNORECASE,
    ),
]

_FROM_RE = re.compile(r"(?:Reply from|From)\s+(?P<addr>[0-9A-Fa-f.:]+?)(?::\s|\s)")

# ordem importa: específicos antes do genérico
_FAILURES = [
    ("destination host unreachable", OutcomeKind.DESTINATION_HOST_UNREACHABLE),
    ("destination net unreachable", OutcomeKind.DESTINATION_NETWORK_UNREACHABLE),
    ("destination network unreachable", OutcomeKind.DESTINATION_NETWORK_UNREACHABLE),
    ("destination protocol unreachable", OutcomeKind.DESTINATION_PROTOCOL_UNREACHABLE),
    ("destination port unreachable", OutcomeKind.DESTINATION_PORT_UNREACHABLE),
    ("destination unreachable", OutcomeKind.DESTINATION_UNREACHABLE),
    ("destination specified is invalid", OutcomeKind.BAD_DESTINATION),
    ("time to live exceeded", OutcomeKind.TTL_EXPIRED),
    ("ttl expired in transit", OutcomeKind.TTL_EXPIRED),
    ("frag needed and df set", OutcomeKind.PACKET_TOO_BIG),
    ("needs to be fragmented but df set", OutcomeKind.PACKET_TOO_BIG),
    ("message too long", OutcomeKind.PACKET_TOO_BIG),
    ("parameter problem", OutcomeKind.PARAMETER_PROBLEM),
    ("source quench", OutcomeKind.SOURCE_QUENCH),
    ("request timed out", OutcomeKind.TIMED_OUT),
]

# falha antes de existir resposta: vira ProbeError (status Unknown no engine)
_RESOLUTION_ERRORS = (
    "unknown host",
    "name or service not known",
    "could not find host",
    "temporary failure in name resolution",
    "cannot resolve",
    "nodename nor servname",
)

# erro local do ping (permissão, socket, argumento): também ProbeError
_LOCAL_ERRORS = (
    "general failure",
    "transmit failed",
    "operation not permitted",
    "permission denied",
    "invalid argument",
    "bad value for",
    "usage:",
)


def _reply_ms(raw: str) -> int:
    # resposta abaixo de 1ms conta como 1ms (mesmo que "time<1ms" no windows)
    return max(1, int(round(float(raw))))


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def _line_with(text: str, needle: str) -> str:
    for line in text.splitlines():
        if needle in line.lower():
            return line.strip()
    return needle


def parse_ping_output(text: str, exit_error: bool = False) -> ProbeOutcome:
    """
    Converte a saída de UM echo do ping do sistema (linux, macOS ou windows).

    exit_error: o processo saiu com código de erro (não só "sem resposta").
    Sem linha de resposta reconhecível => TimedOut, a menos que a saída
    ou o código de saída indiquem falha local do ping (ProbeError).
    """
    low = text.lower()
    for needle in _RESOLUTION_ERRORS:
        if needle in low:
            raise ProbeError(_line_with(text, needle))

    for rx in _REPLY_RES:
        m = rx.search(text)
        if m:
            ttl = m.group("ttl")
            return ProbeOutcome(
                status=OutcomeKind.SUCCESS,
                address=m.group("addr"),
                round_trip_ms=_reply_ms(m.group("time")),
                ttl=int(ttl) if ttl else None,
            )

    for needle, kind in _FAILURES:
        if needle in low:
            addr: Optional[str] = None
            if kind is not OutcomeKind.TIMED_OUT:
                fm = _FROM_RE.search(text)
                if fm:
                    addr = fm.group("addr")
            return ProbeOutcome(status=kind, address=addr)

    for needle in _LOCAL_ERRORS:
        if needle in low:
            raise ProbeError(_line_with(text, needle))
    if exit_error:
        raise ProbeError(_first_line(text) or "ping failed")

    return ProbeOutcome(status=OutcomeKind.TIMED_OUT)


class SystemPingProber(Prober):
    """
    Prober via binário `ping` do sistema (um echo por chamada).
    Não precisa de raw socket/root, por isso o payload é aproximado:
    tamanho exato, conteúdo via -p (padrão de até 16 bytes) onde existe.
    """

    def __init__(self, ping_bin: str = DEFAULT_PING_BIN, system: Optional[str] = None):
        self.ping_bin = ping_bin
        self.system = (system or platform.system()).lower()

    def is_error_exit(self, returncode: int) -> bool:
        """
        linux: 1 = sem resposta, 2 = erro. macOS: 2 = sem resposta, >2 = erro.
        windows: 1 cobre os dois casos; só a saída diferencia.
        """
        if self.system == "windows":
            return False
        if self.system == "darwin":
            return returncode > 2
        return returncode > 1

    def build_cmd(self, target: str, timeout_ms: int, payload: bytes, options: ProbeOptions) -> List[str]:
        size = len(payload)
        if self.system == "windows":
            cmd = [self.ping_bin, "-n", "1", "-w", str(timeout_ms), "-l", str(size), "-i", str(options.ttl)]
            if options.dont_fragment:
                cmd.append("-f")
            return cmd + [target]

        pattern = ["-p", payload[:16].hex()] if payload else []
        if self.system == "darwin":
            # macOS: -W em milissegundos, -m ttl, -D don't fragment
            cmd = [self.ping_bin, "-n", "-c", "1", "-W", str(timeout_ms), "-s", str(size), "-m", str(options.ttl)]
            if options.dont_fragment:
                cmd.append("-D")
            return cmd + pattern + [target]

        # linux (iputils): -W em segundos inteiros
        timeout_s = max(1, math.ceil(timeout_ms / 1000.0))
        cmd = [self.ping_bin, "-n", "-c", "1", "-W", str(timeout_s), "-s", str(size), "-t", str(options.ttl)]
        if options.dont_fragment:
            cmd += ["-M", "do"]
        return cmd + pattern + [target]

    def probe(
        self,
        target: str,
        timeout_ms: int,
        payload: bytes,
        options: ProbeOptions,
    ) -> ProbeOutcome:
        cmd = self.build_cmd(target, timeout_ms, payload, options)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout_ms / 1000.0 + 2,
            )
        except subprocess.TimeoutExpired:
            return ProbeOutcome(status=OutcomeKind.TIMED_OUT)
        except OSError as exc:
            raise ProbeError(f"could not run {self.ping_bin}: {exc}") from exc

        return parse_ping_output(
            # stderr primeiro: é onde o ping escreve a mensagem de erro
            (result.stderr or "") + (result.stdout or ""),
            exit_error=self.is_error_exit(result.returncode),
        )
