from relaybot.main import run_bot

run_bot()
