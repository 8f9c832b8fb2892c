from live_rekap.main import run

run()
