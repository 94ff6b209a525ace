"""Minimal HTML pages for the links users open from their inbox.

Learn: The verification and reset links land in a browser, not in an API
client, so those two GET routes answer with HTML. The reset form posts
JSON back to POST /users/reset-password-now with a few lines of inline JS.
"""

from html import escape

from fastapi.responses import HTMLResponse

_LAYOUT = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title></head>
<body>
<main>
<h1>{title}</h1>
{body}
</main>
</body>
</html>
"""

_RESET_FORM = """<p>Choose a new password for your account.</p>
<form id="reset-form">
  <input type="hidden" name="reset_token" value="{token}">
  <label>New password <input type="password" name="password" minlength="6" required></label>
  <button type="submit">Reset Password</button>
</form>
<p id="reset-result" role="status"></p>
<script>
document.getElementById("reset-form").addEventListener("submit", async (event) => {{
  event.preventDefault();
  const form = new FormData(event.target);
  const resp = await fetch("{action}", {{
    method: "POST",
    headers: {{"Content-Type": "application/json"}},
    body: JSON.stringify(Object.fromEntries(form)),
  }});
  const data = await resp.json();
  document.getElementById("reset-result").textContent =
    data.message || (data.detail ? JSON.stringify(data.detail) : "Something went wrong.");
}});
</script>
"""


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        _LAYOUT.format(title=escape(title), body=body), status_code=status_code
    )


def verification_success(username: str) -> HTMLResponse:
    return _page(
        "Account Verified",
        f"<p>Hello, {escape(username)}. Your account is verified. "
        "You can now sign in.</p>",
    )


def verification_failed(message: str, status_code: int) -> HTMLResponse:
    return _page("Verification Failed", f"<p>{escape(message)}</p>", status_code)


def reset_form(token: str, action: str) -> HTMLResponse:
    return _page(
        "Reset Password",
        _RESET_FORM.format(token=escape(token, quote=True), action=action),
    )


def reset_failed(message: str, status_code: int) -> HTMLResponse:
    return _page("Reset Failed", f"<p>{escape(message)}</p>", status_code)


def reset_unauthorized(message: str) -> HTMLResponse:
    return _page("Link Expired", f"<p>{escape(message)}</p>", status_code=401)
