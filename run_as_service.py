"""
Windows Service wrapper for Video Sorter.
Requires: pip install pywin32

To install service: python run_as_service.py install
To start service: python run_as_service.py start
To stop service: python run_as_service.py stop
To remove service: python run_as_service.py remove
"""
import sys
import os
import threading

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

try:
	import win32serviceutil
	import win32service
	import servicemanager
except ImportError:
	print("ERROR: pywin32 not installed. Install with: pip install pywin32")
	sys.exit(1)

from log_setup import setup_logging
from orchestrator import VideoSorterApp
from settings import get_app_home, get_settings


class VideoSorterService(win32serviceutil.ServiceFramework):
	"""
	Runs the upload server and drive detector without a desktop session.
	"""
	_svc_name_ = "VideoSorter"
	_svc_display_name_ = "Video Sorter Upload Service"
	_svc_description_ = "Receives videos from phones on the local network and sorts them by class"

	def __init__(self, args):
		win32serviceutil.ServiceFramework.__init__(self, args)
		self.stop_event = threading.Event()
		self.app = None

	def SvcStop(self):
		self.ReportServiceStatus(win32service.SERVICE_STOP_PENDING)
		self.stop_event.set()

	def SvcDoRun(self):
		servicemanager.LogMsg(
			servicemanager.EVENTLOG_INFORMATION_TYPE,
			servicemanager.PYS_SERVICE_STARTED,
			(self._svc_name_, '')
		)
		self.main()

	def main(self):
		home = get_app_home()
		settings = get_settings(home)
		setup_logging(os.path.join(home, 'logs'), settings['log_level'])
		try:
			self.app = VideoSorterApp(settings=settings, home=home)
			self.app.start()
			servicemanager.LogInfoMsg(f"Upload URL: {self.app.get_server_info()['qrUrl']}")
			self.stop_event.wait()
		except Exception as e:
			servicemanager.LogErrorMsg(f"Service error: {e}")
			raise
		finally:
			if self.app is not None:
				self.app.shutdown()

if __name__ == '__main__':
	if len(sys.argv) == 1:
		servicemanager.Initialize()
		servicemanager.PrepareToHostSingle(VideoSorterService)
		servicemanager.StartServiceCtrlDispatcher()
	else:
		win32serviceutil.HandleCommandLine(VideoSorterService)
