from vlclient.cli.app import app

app(prog_name="vl")
