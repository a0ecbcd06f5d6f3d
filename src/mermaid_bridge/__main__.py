from mermaid_bridge.cli import run

run()
