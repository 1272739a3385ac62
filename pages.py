from flask import render_template_string

_LAYOUT = """<!DOCTYPE html>
<html>
<head>
  <title>{{ title }}</title>
  <style>
    body { font-family: Arial, sans-serif; background: #36393f; color: white; text-align: center; padding: 50px; }
    .status { background: #2f3136; padding: 20px; border-radius: 10px; max-width: 600px; margin: 0 auto; }
    .code { color: #b9bbbe; font-size: 0.85em; }
  </style>
</head>
<body>
  <div class="status">
  {% block body %}{% endblock %}
  </div>
</body>
</html>
"""

STATUS_PAGE = _LAYOUT.replace(
    "{% block body %}{% endblock %}",
    """<h1>🛡️ Discord Verification Bot</h1>
    <p>Status: <strong style="color:#3ba55c">Online</strong></p>""",
)

SUCCESS_PAGE = _LAYOUT.replace(
    "{% block body %}{% endblock %}",
    """<h1 style="color:#3ba55c">✅ Verification Complete</h1>
    <p>You can now close this window.</p>
    <script>setTimeout(() => window.close(), 2000);</script>""",
)

FAILURE_PAGE = _LAYOUT.replace(
    "{% block body %}{% endblock %}",
    """<h1 style="color:#ff3333">❌ Verification Failed</h1>
    <p>{{ message }}</p>
    {% if code %}<p class="code">Error code: {{ code }}</p>{% endif %}""",
)


def status_page():
    return render_template_string(STATUS_PAGE, title="Discord Verification Bot")


def success_page():
    return render_template_string(SUCCESS_PAGE, title="Verified!")


def failure_page(message: str, code: str = None):
    # Autoescaped, so nothing in the message can inject markup.
    return render_template_string(FAILURE_PAGE, title="Error", message=message, code=code)
