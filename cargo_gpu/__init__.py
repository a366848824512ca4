"""cargo-gpu — install the rust-gpu codegen backend and build shader crates."""

__version__ = "0.1.0"
