from pathlib import Path

import zenmarks.apps as apps_mod
from zenmarks.apps import Application, OpenAction, find_browser_app, installed_applications, open_url, resolve_open_action


def _desktop(d: Path, name: str, body: str) -> Path:
    d.mkdir(parents=True, exist_ok=True)
    p = d / name
    p.write_text(body, encoding="utf-8")
    return p


def test_installed_applications_reads_desktop_entries(tmp_path: Path):
    apps_dir = tmp_path / "applications"
    _desktop(apps_dir, "app.zen_browser.zen.desktop", "[Desktop Entry]\nName=Zen Browser\nExec=zen %u\n")
    _desktop(apps_dir, "hidden.desktop", "[Desktop Entry]\nName=Hidden\nHidden=true\n")
    _desktop(apps_dir, "broken.desktop", "no section here\n")
    _desktop(apps_dir / "kde", "konsole.desktop", "[Desktop Entry]\nName=Konsole\n")
    apps = installed_applications([apps_dir, tmp_path / "missing"])
    assert {a.id: a.name for a in apps} == {
        "app.zen_browser.zen.desktop": "Zen Browser",
        "kde-konsole.desktop": "Konsole",
    }


def test_find_browser_app_is_case_insensitive():
    apps = [
        Application("org.gnome.Terminal.desktop", "Terminal", Path("/x")),
        Application("app.ZEN_BROWSER.zen.desktop", "Browser", Path("/y")),
    ]
    assert find_browser_app(apps).id == "app.ZEN_BROWSER.zen.desktop"
    assert find_browser_app([Application("a.desktop", "ZEN", Path("/z"))]).id == "a.desktop"
    assert find_browser_app(apps[:1]) is None


def test_resolve_open_action(tmp_path: Path):
    apps_dir = tmp_path / "applications"
    _desktop(apps_dir, "zen.desktop", "[Desktop Entry]\nName=Zen\n")
    assert resolve_open_action(dirs=[apps_dir]) == OpenAction(app_id="zen.desktop")
    assert resolve_open_action(dirs=[tmp_path / "none"]) == OpenAction()
    assert OpenAction().title == "Open in Browser"


def test_resolve_open_action_falls_back_when_lookup_fails(monkeypatch):
    def _boom(dirs=None):
        raise PermissionError("denied")

    monkeypatch.setattr(apps_mod, "installed_applications", _boom)
    assert resolve_open_action(fallback_app_id="app.zen_browser.zen.desktop").app_id == "app.zen_browser.zen.desktop"


def test_open_url_uses_gtk_launch_then_browser(monkeypatch):
    calls = []

    class _R:
        returncode = 0
        stderr = ""

    def _run(cmd, **kwargs):
        calls.append(cmd)
        return _R()

    opened = []
    monkeypatch.setattr(apps_mod.subprocess, "run", _run)
    monkeypatch.setattr(apps_mod.webbrowser, "open", lambda url: opened.append(url) or True)

    assert open_url("https://a.example/", OpenAction("app.zen_browser.zen.desktop")) is True
    assert calls == [["gtk-launch", "app.zen_browser.zen", "https://a.example/"]]
    assert opened == []

    assert open_url("https://b.example/", OpenAction()) is True
    assert opened == ["https://b.example/"]


def test_open_url_falls_back_when_launcher_missing(monkeypatch):
    def _run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    opened = []
    monkeypatch.setattr(apps_mod.subprocess, "run", _run)
    monkeypatch.setattr(apps_mod.webbrowser, "open", lambda url: opened.append(url) or True)
    assert open_url("https://a.example/", OpenAction("zen.desktop")) is True
    assert opened == ["https://a.example/"]
