"""Helper scripts that finish a deferred swap after svctools exits.

The helper waits (bounded) until no process named like the live executable
remains, moves the backup aside, promotes the candidate onto the live path,
then deletes the old copy, the pending marker and itself. On timeout or a
failed promotion it rewrites the pending marker as ``failed`` so the next
svctools run can report the interrupted update.
"""

from __future__ import annotations

import math
import textwrap
from dataclasses import dataclass
from pathlib import Path

from ...models import ReplacementSection
from ...paths import InstallLayout

__all__ = ["HelperScript", "poll_attempts", "render_helper"]


_POWERSHELL_HELPER = textwrap.dedent(
    """
    param(
        [string]$ProcessName,
        [string]$LivePath,
        [string]$CandidatePath,
        [string]$BackupPath,
        [string]$OldPath,
        [string]$MarkerPath,
        [int]$PollIntervalMs = 1000,
        [int]$MaxAttempts = 600
    )

    $ErrorActionPreference = 'Stop'

    function Write-FailureMarker {
        param([string]$Reason)

        try {
            $payload = Get-Content -LiteralPath $MarkerPath -Raw | ConvertFrom-Json
            $payload.status = 'failed'
            $payload.reason = $Reason
            $encoding = New-Object System.Text.UTF8Encoding($false)
            [System.IO.File]::WriteAllText($MarkerPath, ($payload | ConvertTo-Json), $encoding)
        }
        catch {
            Write-Output ("Failed to record failure marker: " + $_.Exception.Message)
        }
    }

    $attempt = 0
    while (Get-Process -Name $ProcessName -ErrorAction SilentlyContinue) {
        $attempt++
        if ($attempt -ge $MaxAttempts) {
            Write-FailureMarker "timed out waiting for $ProcessName to exit; manual intervention needed"
            exit 1
        }
        Start-Sleep -Milliseconds $PollIntervalMs
    }

    try {
        if (Test-Path -LiteralPath $OldPath) {
            Remove-Item -LiteralPath $OldPath -Force
        }
        if (Test-Path -LiteralPath $BackupPath) {
            Move-Item -LiteralPath $BackupPath -Destination $OldPath -Force
        }
        Move-Item -LiteralPath $CandidatePath -Destination $LivePath -Force
    }
    catch {
        $reason = $_.Exception.Message
        if (-not (Test-Path -LiteralPath $LivePath) -and (Test-Path -LiteralPath $OldPath)) {
            Move-Item -LiteralPath $OldPath -Destination $LivePath -Force
        }
        elseif (Test-Path -LiteralPath $OldPath) {
            Move-Item -LiteralPath $OldPath -Destination $BackupPath -Force
        }
        Write-FailureMarker ("replacing the executable failed: " + $reason)
        exit 1
    }

    if (Test-Path -LiteralPath $OldPath) {
        Remove-Item -LiteralPath $OldPath -Force
    }
    if (Test-Path -LiteralPath $MarkerPath) {
        Remove-Item -LiteralPath $MarkerPath -Force
    }
    Write-Output "Update completed successfully!"
    Remove-Item -LiteralPath $PSCommandPath -Force
    """
).strip()


_POSIX_HELPER = textwrap.dedent(
    """
    #!/bin/sh
    process_name="$1"
    live_path="$2"
    candidate_path="$3"
    backup_path="$4"
    old_path="$5"
    marker_path="$6"
    poll_interval="$7"
    max_attempts="$8"

    mark_failed() {
        if [ -f "$marker_path" ]; then
            sed -e 's/"status": "pending"/"status": "failed"/' \\
                -e "s/\\"reason\\": null/\\"reason\\": \\"$1\\"/" \\
                "$marker_path" > "$marker_path.tmp" && mv -f "$marker_path.tmp" "$marker_path"
        fi
    }

    is_running() {
        ps -A -o comm= 2>/dev/null | awk -v name="$process_name" '
            { n = $0; sub(".*/", "", n); if (n == name || (length(name) > 15 && n == substr(name, 1, 15))) found = 1 }
            END { exit found ? 0 : 1 }'
    }

    attempt=0
    while is_running; do
        attempt=$((attempt + 1))
        if [ "$attempt" -ge "$max_attempts" ]; then
            mark_failed "timed out waiting for $process_name to exit; manual intervention needed"
            exit 1
        fi
        sleep "$poll_interval"
    done

    rm -f -- "$old_path"
    if [ -f "$backup_path" ]; then
        mv -f -- "$backup_path" "$old_path"
    fi
    if ! mv -f -- "$candidate_path" "$live_path"; then
        if [ ! -f "$live_path" ] && [ -f "$old_path" ]; then
            mv -f -- "$old_path" "$live_path"
        elif [ -f "$old_path" ]; then
            mv -f -- "$old_path" "$backup_path"
        fi
        mark_failed "replacing the executable failed"
        exit 1
    fi

    rm -f -- "$old_path" "$marker_path"
    echo "Update completed successfully!"
    rm -f -- "$0"
    """
).strip()


@dataclass(frozen=True)
class HelperScript:
    path: Path
    content: str
    argv: tuple[str, ...]


def poll_attempts(replacement: ReplacementSection) -> int:
    """Return how many polls fit in the configured maximum wait.

    Example:
        >>> poll_attempts(ReplacementSection(poll_interval_seconds=2, max_wait_seconds=5))
        3
    """
    return max(1, math.ceil(replacement.max_wait_seconds / replacement.poll_interval_seconds))


def _format_seconds(value: float) -> str:
    return f"{value:g}"


def render_helper(
    layout: InstallLayout, replacement: ReplacementSection, *, windows: bool
) -> HelperScript:
    """Render the helper for the current platform with its launch command."""
    attempts = str(poll_attempts(replacement))
    if windows:
        path = layout.helper_script_path(".ps1")
        argv = (
            "powershell",
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-WindowStyle",
            "Hidden",
            "-File",
            str(path),
            "-ProcessName",
            layout.process_name,
            "-LivePath",
            str(layout.live_path),
            "-CandidatePath",
            str(layout.staging_path),
            "-BackupPath",
            str(layout.backup_path),
            "-OldPath",
            str(layout.old_path),
            "-MarkerPath",
            str(layout.pending_marker_path),
            "-PollIntervalMs",
            str(int(replacement.poll_interval_seconds * 1000)),
            "-MaxAttempts",
            attempts,
        )
        return HelperScript(path=path, content=_POWERSHELL_HELPER + "\n", argv=argv)

    path = layout.helper_script_path(".sh")
    argv = (
        "/bin/sh",
        str(path),
        layout.process_name,
        str(layout.live_path),
        str(layout.staging_path),
        str(layout.backup_path),
        str(layout.old_path),
        str(layout.pending_marker_path),
        _format_seconds(replacement.poll_interval_seconds),
        attempts,
    )
    return HelperScript(path=path, content=_POSIX_HELPER + "\n", argv=argv)
