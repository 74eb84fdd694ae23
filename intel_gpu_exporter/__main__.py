from intel_gpu_exporter.cli import app

app(prog_name="intel-gpu-exporter")
