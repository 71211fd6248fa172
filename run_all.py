"""
Run complete magnetic pendulum fractal pipeline
"""

import logging

import config
import image_writer
import renderer
import simulator
from logging_config import setup_logging
from pendulum_system import load_system_config


def main(config_path: str = config.SYSTEM_CONFIG_FILE, processes: int | None = None):
    """
    Complete pipeline:
    1. Load the pendulum and magnet layout
    2. Precompute escape thresholds and the view window
    3. Render every pixel in parallel
    4. Write the image (and the raw result grids)
    """

    setup_logging()
    logging.captureWarnings(True)

    print("=" * 60)
    print("MAGNETIC PENDULUM FRACTAL")
    print("=" * 60)
    print()

    # Configuration
    sim_config = simulator.SimConfig(
        time_step=config.TIME_STEP,
        max_steps=config.MAX_STEPS,
        capture_radius=config.CAPTURE_RADIUS,
        check_interval=config.CHECK_INTERVAL,
        width=config.WIDTH,
        height=config.HEIGHT,
    )

    print("Configuration:")
    print(f"  Layout: {config_path}")
    print(f"  Resolution: {sim_config.width}x{sim_config.height}")
    print(f"  Time step: {sim_config.time_step}")
    print(f"  Step budget: {sim_config.max_steps}")
    print(f"  Capture radius: {sim_config.capture_radius}")
    print()

    # Step 1: Load layout
    print("STEP 1: Loading pendulum and magnet layout...")
    print("-" * 60)
    system = load_system_config(config_path)
    print()

    # Step 2: Precompute
    print("STEP 2: Pre-calculating energy thresholds and bounds...")
    print("-" * 60)
    context = simulator.prepare_context(system, sim_config)
    print()

    # Step 3: Render
    print("STEP 3: Rendering fractal...")
    print("-" * 60)
    result = renderer.render_fractal(context, processes=processes)
    print()

    # Step 4: Save
    print("STEP 4: Saving image...")
    print("-" * 60)
    image_writer.save_image(result.rgb, config.OUTPUT_FILENAME)
    image_writer.save_results(result, context, config.RESULTS_FILENAME)
    print()

    print("=" * 60)
    print("COMPLETE!")
    print("=" * 60)
    return result


if __name__ == '__main__':
    main()
