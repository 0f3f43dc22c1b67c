HTML = """
<!doctype html>
<html>
<head>
  <meta charset="utf-8"/>
  <title>Connection Exporter</title>
  <style>
    body { background:#14181d; color:#e8eaed; font-family: ui-sans-serif,system-ui,Segoe UI,Arial; }
    a { color:#8ab4f8; }
    table { border-collapse: collapse; width: 100%; font-size: 13px; }
    th, td { border-bottom: 1px solid #2a2f36; padding: 3px 8px; text-align: left; }
    th { color:#9aa0a6; }
    .incoming { color:#6aa84f; } .outgoing { color:#ff9900; }
  </style>
</head>
<body>
  <h2>Connection Exporter</h2>
  <p><a href="/metrics">Metrics</a> &middot; <a href="/api/connections">/api/connections</a>
     &middot; <a href="/api/interfaces">/api/interfaces</a></p>
  <p id="summary"></p>
  <table>
    <thead><tr>
      <th>proto</th><th>source</th><th>destination</th><th>state</th>
      <th>interface</th><th>direction</th><th>process</th>
    </tr></thead>
    <tbody id="rows"></tbody>
  </table>

  <script>
  function esc(s){ const d = document.createElement('div'); d.textContent = s; return d.innerHTML; }

  async function refresh(){
    try{
      const r = await fetch('/api/connections');
      const data = await r.json();
      document.getElementById('summary').textContent = data.length + ' connections';
      document.getElementById('rows').innerHTML = data.map(c =>
        `<tr><td>${esc(c.protocol)}</td>` +
        `<td>${esc(c.source_address)}:${esc(c.source_port)}</td>` +
        `<td>${esc(c.destination_address)}:${esc(c.destination_port)}</td>` +
        `<td>${esc(c.state)}</td><td>${esc(c.interface)}</td>` +
        `<td class="${esc(c.direction)}">${esc(c.direction)}</td><td>${esc(c.process_name)}</td></tr>`
      ).join('');
    }catch(e){ console.error(e); }
  }

  setInterval(refresh, REFRESH_MS);
  refresh();
  </script>
</body>
</html>
"""

def render_html(refresh_seconds: float = 5.0) -> str:
    return HTML.replace("REFRESH_MS", str(int(refresh_seconds * 1000)))
