from kvm_deploy.cli import app

app()
