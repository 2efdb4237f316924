from truckersmp_proxy.main import run

run()
