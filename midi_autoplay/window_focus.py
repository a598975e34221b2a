"""Bring the target game's window to the foreground before playback."""

import logging
import sys

log = logging.getLogger('midi_autoplay.window_focus')

PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
SW_RESTORE = 9


def focus_process_window(process_name: str) -> bool:
    """Focus the first top-level window owned by `process_name` (e.g. 'game.exe').

    Windows only. Returns True if a window was found and focused.
    """
    if not process_name or sys.platform != 'win32':
        return False
    try:
        import ctypes
        from ctypes import wintypes
    except ImportError:
        return False

    kernel32 = ctypes.windll.kernel32
    user32 = ctypes.windll.user32
    wanted = process_name.lower()
    found: list = []

    def enum_cb(hwnd, _):
        if not user32.IsWindowVisible(hwnd):
            return True
        pid = wintypes.DWORD()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        if not pid.value:
            return True
        handle = kernel32.OpenProcess(PROCESS_QUERY_LIMITED_INFORMATION, False, pid.value)
        if not handle:
            return True
        try:
            buf = ctypes.create_unicode_buffer(260)
            size = wintypes.DWORD(260)
            if kernel32.QueryFullProcessImageNameW(handle, 0, buf, ctypes.byref(size)):
                if buf.value.lower().endswith(wanted):
                    found.append(hwnd)
                    return False
        finally:
            kernel32.CloseHandle(handle)
        return True

    WNDENUMPROC = ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.HWND, wintypes.LPARAM)
    try:
        user32.EnumWindows(WNDENUMPROC(enum_cb), 0)
        if not found:
            log.info('No window found for process %s', process_name)
            return False
        hwnd = found[0]
        if user32.IsIconic(hwnd):
            user32.ShowWindow(hwnd, SW_RESTORE)
        ok = bool(user32.SetForegroundWindow(hwnd))
    except OSError:
        log.exception('Could not focus %s', process_name)
        return False
    log.info('Focused window of %s', process_name)
    return ok
