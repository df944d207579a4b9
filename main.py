import argparse
import logging
import time

from analysis.mapping import MAPPING_METHODS
from tracker.frame_source import MicFrameSource, SignalFrameSource
from tracker.session import VowelTrackingSession
from tracker.settings import SessionSettings, load_settings

logger = logging.getLogger(__name__)


def build_parser():
    p = argparse.ArgumentParser(
        description="Track the vowel-space position of live or recorded audio."
    )
    p.add_argument("--file", help="analyze an audio file instead of the microphone")
    p.add_argument("--settings", help="JSON settings file")
    p.add_argument("--mapping", choices=sorted(MAPPING_METHODS))
    p.add_argument("--smoothing", type=int)
    p.add_argument("--min-hz", type=float)
    p.add_argument("--max-hz", type=float)
    p.add_argument("--normalize", action="store_true", default=None,
                   help="L2-normalize MFCC features (needs matching weights)")
    p.add_argument("--weights-dir", help="directory holding weights.xml / weights_norm_mfcc.xml")
    p.add_argument("--device", help="input device name or index")
    p.add_argument("--seconds", type=float, default=10.0,
                   help="how long to listen to the microphone")
    p.add_argument("--interval", type=float, default=0.25,
                   help="seconds between position reports")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def settings_from_args(args) -> SessionSettings:
    settings = load_settings(args.settings) if args.settings else SessionSettings()
    changes = {
        "mapping": args.mapping,
        "smoothing": args.smoothing,
        "min_hz": args.min_hz,
        "max_hz": args.max_hz,
        "normalize_features": args.normalize,
    }
    settings.update(**{k: v for k, v in changes.items() if v is not None})
    return settings


def _report(session):
    pos = session.position
    if pos is None:
        logger.info("position: (none yet)")
    else:
        logger.info("position: backness=%.3f height=%.3f", pos.backness, pos.height)


def run_file(session, path):
    source = SignalFrameSource.from_file(path)
    session.attach(source)
    frames = 0
    while source.step():
        frames += 1
        if frames % 25 == 0:
            _report(session)
    _report(session)
    logger.info("Processed %d frames: %s", frames, session.stats)


def run_mic(session, device, seconds, interval):
    device = int(device) if device is not None and device.isdigit() else device
    source = MicFrameSource(device=device)
    session.attach(source)
    source.start()
    try:
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            time.sleep(interval)
            _report(session)
    except KeyboardInterrupt:
        pass
    finally:
        source.stop()
    logger.info("Session stats: %s", session.stats)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    session = VowelTrackingSession(settings=settings_from_args(args))
    if args.weights_dir:
        session.load_weights(args.weights_dir)

    try:
        if args.file:
            run_file(session, args.file)
        else:
            run_mic(session, args.device, args.seconds, args.interval)
    finally:
        session.destroy()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
