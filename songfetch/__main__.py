from songfetch.main import run

run()
